"""Gradio layout for uploading screenshots and browsing analysis history."""

from __future__ import annotations

from typing import Any, Callable, List

try:
    import gradio as gr
except ImportError:  # pragma: no cover
    gr = None  # type: ignore

from analyzer.ui.callbacks import SessionView, build_callbacks
from config.settings import AppConfig

HISTORY_HEADERS = ["#", "时间", "截图", "项目", "标签", "摘要"]


def build_app(config: AppConfig) -> Any:
    """Compose and return the Gradio application."""
    if gr is None:
        raise RuntimeError("Gradio 未安装，请先执行依赖安装。")

    callbacks_map = build_callbacks(config)
    template_choices = callbacks_map["template_choices"]
    initial = callbacks_map["on_refresh"]()

    with gr.Blocks(title="Screenshot Flow Analyzer") as demo:
        gr.Markdown("## Screenshot Flow Analyzer\n上传截图，获取 AI 生成的 UI/UX 流程描述")

        with gr.Row():
            api_key = gr.Textbox(
                label="Claude API Key",
                type="password",
                placeholder="Enter your Claude API key",
                value=callbacks_map["on_load_api_key"](),
                scale=4,
            )
            save_key_btn = gr.Button("Save", scale=1)

        with gr.Accordion("Analysis Prompt", open=False):
            with gr.Row():
                template_select = gr.Dropdown(
                    label="提示词模板",
                    choices=template_choices(),
                    value="default",
                )
                custom_name = gr.Textbox(label="自定义提示词名称", placeholder="例如：登录流程评审")
            prompt = gr.Textbox(label="分析提示词", lines=10, value=initial.prompt_text)
            with gr.Row():
                save_prompt_btn = gr.Button("Save Prompt")
                reset_prompt_btn = gr.Button("Reset to Default")
                save_custom_btn = gr.Button("保存为自定义模板")
                delete_custom_btn = gr.Button("删除所选自定义模板")

        with gr.Row():
            with gr.Column():
                uploads = gr.File(
                    label="Drag and drop screenshots here, or click to select",
                    file_count="multiple",
                    file_types=["image"],
                )
                gallery = gr.Gallery(label="截图（按提交顺序）", columns=4, value=initial.gallery)
                with gr.Row():
                    image_select = gr.Dropdown(label="选择截图", choices=initial.image_choices)
                    target_position = gr.Number(label="移动到位置", precision=0, minimum=1)
                with gr.Row():
                    move_btn = gr.Button("移动")
                    remove_btn = gr.Button("移除")
                    clear_images_btn = gr.Button("清空截图")
                with gr.Row():
                    project = gr.Textbox(label="项目", placeholder="例如：Checkout")
                    tags = gr.Textbox(label="标签（逗号分隔）", placeholder="login, mobile")
                with gr.Row():
                    new_btn = gr.Button("New Analysis")
                    analyze_btn = gr.Button("Analyze Screenshots", variant="primary")

            with gr.Column():
                result = gr.Textbox(
                    label="Analysis Results",
                    lines=20,
                    interactive=False,
                    show_copy_button=True,
                )
                status = gr.Markdown("准备就绪。")

        history_title = gr.Markdown(f"### {initial.history_title}")
        with gr.Row():
            search = gr.Textbox(label="搜索", placeholder="在分析结果、项目和标签中搜索")
            project_filter = gr.Dropdown(
                label="按项目筛选",
                choices=[""] + initial.project_choices,
                value="",
                allow_custom_value=True,
            )
        tag_summary = gr.Markdown(initial.tag_summary)
        position = gr.Markdown(initial.position)
        with gr.Row():
            prev_btn = gr.Button("◀ 上一条")
            next_btn = gr.Button("下一条 ▶")
            delete_btn = gr.Button("删除当前记录")
            clear_history_btn = gr.Button("Clear All")
        history_table = gr.Dataframe(
            headers=HISTORY_HEADERS,
            value=initial.history_rows,
            interactive=False,
            wrap=True,
        )

        view_outputs = [
            gallery,
            image_select,
            prompt,
            project,
            tags,
            result,
            status,
            history_table,
            history_title,
            position,
            project_filter,
            tag_summary,
            uploads,
            analyze_btn,
        ]

        def _to_outputs(view: SessionView) -> List[Any]:
            return [
                [(image, caption) for image, caption in view.gallery if image is not None],
                gr.update(choices=view.image_choices, value=None),
                view.prompt_text,
                view.project,
                view.tags_text,
                view.result_text,
                view.status,
                view.history_rows,
                f"### {view.history_title}",
                view.position,
                gr.update(choices=[""] + view.project_choices),
                view.tag_summary,
                gr.update(value=None, interactive=not view.viewing_history),
                gr.update(interactive=not view.viewing_history),
            ]

        def _wrap(fn: Callable[..., SessionView]) -> Callable[..., List[Any]]:
            def _handler(*args: Any) -> List[Any]:
                return _to_outputs(fn(*args))

            return _handler

        async def _on_upload(files: Any) -> List[Any]:
            if not files:
                return [gr.update() for _ in view_outputs]
            return _to_outputs(await callbacks_map["on_upload"](files))

        def _on_select_history(evt: gr.SelectData) -> List[Any]:
            row = evt.index[0] if isinstance(evt.index, (list, tuple)) else evt.index
            return _to_outputs(callbacks_map["on_load_history"](row))

        def _on_template_changes(payload: Any) -> Any:
            choices, message = payload
            return gr.update(choices=choices), message

        save_key_btn.click(fn=callbacks_map["on_save_api_key"], inputs=[api_key], outputs=[status])

        template_select.change(
            fn=callbacks_map["on_select_template"],
            inputs=[template_select],
            outputs=[prompt, status],
        )
        save_prompt_btn.click(fn=callbacks_map["on_save_prompt"], inputs=[prompt], outputs=[status])
        reset_prompt_btn.click(fn=callbacks_map["on_reset_prompt"], outputs=[prompt, status])
        save_custom_btn.click(
            fn=lambda name, text: _on_template_changes(
                callbacks_map["on_save_custom_prompt"](name, text)
            ),
            inputs=[custom_name, prompt],
            outputs=[template_select, status],
        )
        delete_custom_btn.click(
            fn=lambda prompt_id: _on_template_changes(
                callbacks_map["on_delete_custom_prompt"](prompt_id)
            ),
            inputs=[template_select],
            outputs=[template_select, status],
        )

        uploads.upload(fn=_on_upload, inputs=[uploads], outputs=view_outputs)
        move_btn.click(
            fn=_wrap(callbacks_map["on_move_image"]),
            inputs=[image_select, target_position],
            outputs=view_outputs,
        )
        remove_btn.click(
            fn=_wrap(callbacks_map["on_remove_image"]), inputs=[image_select], outputs=view_outputs
        )
        clear_images_btn.click(fn=_wrap(callbacks_map["on_clear_images"]), outputs=view_outputs)

        analyze_btn.click(
            fn=_wrap(callbacks_map["on_analyze"]),
            inputs=[api_key, prompt, project, tags],
            outputs=view_outputs,
            concurrency_limit=1,
        )
        new_btn.click(fn=_wrap(callbacks_map["on_new_analysis"]), outputs=view_outputs)

        history_table.select(fn=_on_select_history, outputs=view_outputs)
        prev_btn.click(fn=_wrap(lambda: callbacks_map["on_navigate"](-1)), outputs=view_outputs)
        next_btn.click(fn=_wrap(lambda: callbacks_map["on_navigate"](1)), outputs=view_outputs)
        delete_btn.click(fn=_wrap(callbacks_map["on_delete_current"]), outputs=view_outputs)
        clear_history_btn.click(fn=_wrap(callbacks_map["on_clear_history"]), outputs=view_outputs)

        search.change(
            fn=_wrap(callbacks_map["on_filter"]),
            inputs=[search, project_filter],
            outputs=view_outputs,
        )
        project_filter.change(
            fn=_wrap(callbacks_map["on_filter"]),
            inputs=[search, project_filter],
            outputs=view_outputs,
        )

    return demo
