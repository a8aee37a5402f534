"""
FastAPI dependencies.

Services are built once per application in ``app.main.create_app`` and
kept on ``app.state``; routes receive them through ``Depends``.
"""

from fastapi import Request

from app.services.apple_pay_service import ApplePayService
from app.services.payone_service import PayoneService


def get_payone_service(request: Request) -> PayoneService:
    return request.app.state.payone_service


def get_apple_pay_service(request: Request) -> ApplePayService:
    return request.app.state.apple_pay_service
