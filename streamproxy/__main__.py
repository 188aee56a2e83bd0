import uvicorn

from streamproxy.app import create_app
from streamproxy.config import Settings
from streamproxy.log_setup import configure_logging


def main() -> None:
    settings = Settings()
    configure_logging(settings)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
