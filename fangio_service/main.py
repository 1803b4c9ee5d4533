import uvicorn

from .app import create_app
from .config import get_settings
from .utils.logger import setup_logging

setup_logging()
app = create_app()


def main():
    uvicorn.run("fangio_service.main:app", host="0.0.0.0", port=get_settings().PORT)


if __name__ == "__main__":
    main()
