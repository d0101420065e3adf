"""Application entry point for the Screenshot Flow Analyzer."""

from __future__ import annotations

from typing import Optional

from analyzer.ui.layout import build_app
from analyzer.utils.logging import setup_logging
from config.settings import load_config


def main(config_path: Optional[str] = None) -> None:
    """Load configuration and launch the Gradio interface."""
    config = load_config(config_path)
    logger = setup_logging(config)
    logger.info("History stored in %s", config.data_dir)
    app = build_app(config)
    app.queue()
    app.launch(share=False, inbrowser=False, server_port=config.server_port)


if __name__ == "__main__":
    main()
