from fastapi import Request
from storage_limit.services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services
