"""One-off script for debugging a real screenshot analysis round trip."""

import argparse
import asyncio
from pathlib import Path

from analyzer.ui.callbacks import build_callbacks
from analyzer.utils.logging import setup_logging
from config.settings import load_config


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send screenshots to the inference endpoint.")
    parser.add_argument("images", nargs="+", type=Path, help="Screenshot files, in flow order")
    parser.add_argument("--template", default="default", help="Built-in prompt template id")
    parser.add_argument("--project", default="")
    parser.add_argument("--tags", default="")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    # 1. 准备真实配置与回调（会读取 .env 中的 ANTHROPIC_API_KEY）
    config = load_config()
    setup_logging(config)
    callbacks = build_callbacks(config)

    # 2. 按命令行顺序上传截图，并载入提示词模板
    view = asyncio.run(callbacks["on_upload"]([str(path) for path in args.images]))
    print("上传:", view.status)
    prompt, status = callbacks["on_select_template"](args.template)
    print("模板:", status)

    # 3. 调用分析回调，执行真实推理
    view = callbacks["on_analyze"]("", prompt, args.project, args.tags)
    print("状态:", view.status)
    if view.result_text:
        print(view.result_text)
    else:
        print("未返回分析结果，请检查状态信息。")


if __name__ == "__main__":
    main()
