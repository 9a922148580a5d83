import uvicorn

from storage_limit.core.config import settings


def main():
    uvicorn.run("storage_limit.main:app", host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
