import uvicorn

from caption_agent.config import AppConfig, setup_logging
from caption_agent.server import create_app


def main() -> None:
    """启动代理服务器，需要 OPENAI_API_KEY"""
    config = AppConfig.from_env()
    setup_logging(config.log_level)
    app = create_app(config)
    uvicorn.run(app, host="0.0.0.0", port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
