from fastapi import Request

from core.container import Services

def get_services(request: Request) -> Services:
    """Services wired at startup, shared by every request"""
    return request.app.state.services
