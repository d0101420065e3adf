"""Callback implementations for the Gradio interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from analyzer.pipelines.inference import AnthropicTransport, InferenceTransport
from analyzer.prompts.prompt_library import PromptLibrary
from analyzer.services.history_service import HistoryStore, Submission
from analyzer.services.storage_service import CredentialStore, StorageService
from analyzer.session.controller import SessionController
from analyzer.session.image_set import ImageBlob
from analyzer.utils.image_utils import generate_thumbnail, read_blob_async
from config.settings import AppConfig

logger = logging.getLogger(__name__)

CUSTOM_PREFIX = "★ "


@dataclass(slots=True)
class SessionView:
    """Everything the layout needs to redraw after a callback."""

    gallery: List[Tuple[Any, str]] = field(default_factory=list)
    image_choices: List[Tuple[str, int]] = field(default_factory=list)
    prompt_text: str = ""
    project: str = ""
    tags_text: str = ""
    result_text: str = ""
    status: str = ""
    history_rows: List[List[Any]] = field(default_factory=list)
    history_title: str = ""
    position: str = ""
    project_choices: List[str] = field(default_factory=list)
    tag_summary: str = ""
    viewing_history: bool = False


def _snippet(text: str, limit: int = 80) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else flat[: limit - 1] + "…"


def _history_row(index: int, entry: Submission) -> List[Any]:
    count = len(entry.images)
    return [
        index + 1,
        entry.timestamp.astimezone().strftime("%Y-%m-%d %H:%M"),
        f"{count} screenshot{'s' if count != 1 else ''}",
        entry.project or "",
        ", ".join(entry.tags),
        _snippet(entry.analysis_text),
    ]


def _parse_position(value: Any) -> Optional[int]:
    if value in ("", None):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def build_callbacks(
    config: AppConfig,
    controller: Optional[SessionController] = None,
    transport: Optional[InferenceTransport] = None,
    credentials: Optional[CredentialStore] = None,
) -> dict[str, Any]:
    """Return a dictionary of Gradio callback functions."""

    credentials = credentials or CredentialStore(config.credential_path, fallback=config.anthropic_key)
    typed_key: Dict[str, Optional[str]] = {"value": None}
    stored_credential = credentials.load_credential
    if controller is not None:
        stored_credential = controller.builder.credential_source

    def _credential() -> Optional[str]:
        return (typed_key["value"] or "").strip() or stored_credential()

    if controller is None:
        storage = StorageService(config.data_dir)
        controller = SessionController(
            history=HistoryStore(storage, capacity=config.history_capacity),
            library=PromptLibrary(storage),
            transport=transport or AnthropicTransport(config),
            credential_source=_credential,
        )
    else:
        controller.builder.credential_source = _credential
    session = controller

    def _render(status: str = "") -> SessionView:
        images = session.displayed_images()
        gallery: List[Tuple[Any, str]] = []
        for position, image in enumerate(images, start=1):
            gallery.append((generate_thumbnail(image.payload), f"{position}. {image.display_name}"))

        image_choices: List[Tuple[str, int]] = []
        if not session.viewing_history:
            image_choices = [
                (f"{position}. {item.display_name}", item.id)
                for position, item in enumerate(session.draft.images.items(), start=1)
            ]

        view = session.filtered()
        total = len(session.history)
        if len(view) == total:
            title = f"History ({total})"
        else:
            title = f"History ({len(view)} / {total})"

        position = ""
        if session.viewing_history and session.viewed is not None:
            when = session.viewed.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")
            position = f"正在查看 {when} 的分析 · {session.position_label()}"

        tags = session.query.distinct_tags()
        return SessionView(
            gallery=gallery,
            image_choices=image_choices,
            prompt_text=session.draft.prompt_text,
            project=session.draft.project or "",
            tags_text=", ".join(session.draft.tags),
            result_text=session.result_text or "",
            status=status,
            history_rows=[_history_row(index, entry) for index, entry in enumerate(view)],
            history_title=title,
            position=position,
            project_choices=session.query.distinct_projects(),
            tag_summary="标签：" + "、".join(tags) if tags else "",
            viewing_history=session.viewing_history,
        )

    def _template_choices() -> List[Tuple[str, str]]:
        choices = [(template.name, template.id) for template in session.library.list_builtins()]
        choices.extend(
            (f"{CUSTOM_PREFIX}{prompt.name}", prompt.id) for prompt in session.library.list_custom()
        )
        return choices

    def on_refresh() -> SessionView:
        return _render("准备就绪。")

    def on_save_api_key(api_key: str) -> str:
        typed_key["value"] = api_key
        if credentials.save_credential((api_key or "").strip()):
            return "API Key 已保存。"
        return "API Key 保存失败。"

    def on_load_api_key() -> str:
        return credentials.load_credential() or ""

    async def on_upload(files: Optional[Sequence[Any]]) -> SessionView:
        if session.viewing_history:
            return _render("正在查看历史记录，无法添加截图。")
        counts = {"images": 0, "skipped": 0}

        # the batch may queue behind an earlier upload, so count blobs as they are read
        async def _read(handle: Any) -> ImageBlob:
            blob = await read_blob_async(handle)
            counts["images" if blob.is_image else "skipped"] += 1
            return blob

        await session.draft.images.attach_async(list(files or []), _read)
        message = f"已添加 {counts['images']} 张截图"
        if counts["skipped"]:
            message += f"，忽略 {counts['skipped']} 个非图片文件"
        return _render(message + "。")

    def on_remove_image(image_id: Any) -> SessionView:
        item_id = _parse_position(image_id)
        if item_id is None or not session.draft.images.remove(item_id):
            return _render("请选择要移除的截图。")
        return _render("已移除截图。")

    def on_move_image(image_id: Any, position: Any) -> SessionView:
        item_id = _parse_position(image_id)
        target = _parse_position(position)
        if item_id is None or target is None:
            return _render("请选择截图和目标位置。")
        if not session.draft.images.reorder(item_id, target - 1):
            return _render("截图不存在。")
        return _render("已调整截图顺序。")

    def on_clear_images() -> SessionView:
        session.draft.images.clear()
        return _render("已清空截图。")

    def on_select_template(template_id: str) -> tuple[str, str]:
        text = session.library.get_text(template_id or "")
        if text is None:
            return session.draft.prompt_text, "未找到该提示词模板。"
        session.draft.prompt_text = text
        return text, "已载入提示词模板。"

    def on_save_prompt(prompt: str) -> str:
        session.draft.prompt_text = prompt or ""
        if session.library.remember_prompt(session.draft.prompt_text):
            return "提示词已保存。"
        return "提示词仅保存在本次会话中。"

    def on_reset_prompt() -> tuple[str, str]:
        text = session.library.reset_prompt()
        session.draft.prompt_text = text
        return text, "提示词已恢复默认。"

    def on_save_custom_prompt(name: str, prompt: str) -> tuple[List[Tuple[str, str]], str]:
        if not (prompt or "").strip():
            return _template_choices(), "提示词为空，未保存。"
        saved = session.library.save(name or "", prompt)
        return _template_choices(), f"已保存自定义提示词：{saved.name}"

    def on_delete_custom_prompt(prompt_id: str) -> tuple[List[Tuple[str, str]], str]:
        if session.library.is_builtin(prompt_id or ""):
            return _template_choices(), "内置模板不可删除。"
        if session.library.delete(prompt_id or ""):
            return _template_choices(), "已删除自定义提示词。"
        return _template_choices(), "未找到该自定义提示词。"

    def on_analyze(api_key: str, prompt: str, project: str, tags: str) -> SessionView:
        if (api_key or "").strip():
            typed_key["value"] = api_key
        if not session.viewing_history:
            session.draft.prompt_text = prompt or ""
            session.draft.set_project(project)
            session.draft.set_tags(tags)
        try:
            outcome = session.analyze()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Analysis crashed")
            return _render(f"分析失败：{exc}")
        return _render(outcome.message)

    def on_load_history(row: Any) -> SessionView:
        index = _parse_position(row)
        if index is None or not session.load_from_history(index):
            return _render("历史记录不存在。")
        return _render("")

    def on_navigate(step: int) -> SessionView:
        session.navigate(int(step))
        return _render("")

    def on_new_analysis() -> SessionView:
        session.start_new()
        return _render("已开始新的分析。")

    def on_delete_current() -> SessionView:
        target = session.viewed.id if session.viewed is not None else session.active_id
        if target is None or not session.delete_entry(target):
            return _render("没有可删除的历史记录。")
        return _render("已删除历史记录。")

    def on_delete_history(row: Any) -> SessionView:
        index = _parse_position(row)
        view = session.filtered()
        if index is None or not 0 <= index < len(view):
            return _render("历史记录不存在。")
        session.delete_entry(view[index].id)
        return _render("已删除历史记录。")

    def on_clear_history() -> SessionView:
        session.clear_history()
        return _render("历史记录已清空。")

    def on_filter(search_text: str, project: str) -> SessionView:
        session.set_filter(search_text, project)
        return _render("")

    return {
        "session": session,
        "template_choices": _template_choices,
        "on_refresh": on_refresh,
        "on_save_api_key": on_save_api_key,
        "on_load_api_key": on_load_api_key,
        "on_upload": on_upload,
        "on_remove_image": on_remove_image,
        "on_move_image": on_move_image,
        "on_clear_images": on_clear_images,
        "on_select_template": on_select_template,
        "on_save_prompt": on_save_prompt,
        "on_reset_prompt": on_reset_prompt,
        "on_save_custom_prompt": on_save_custom_prompt,
        "on_delete_custom_prompt": on_delete_custom_prompt,
        "on_analyze": on_analyze,
        "on_load_history": on_load_history,
        "on_navigate": on_navigate,
        "on_new_analysis": on_new_analysis,
        "on_delete_current": on_delete_current,
        "on_delete_history": on_delete_history,
        "on_clear_history": on_clear_history,
        "on_filter": on_filter,
    }
