"""Exceptions raised by identity gateways and document stores, and the
messages shown to users for them."""

from __future__ import annotations

from typing import Dict

UNKNOWN_ERROR_MESSAGE = "發生未知錯誤"

AUTH_ERROR_MESSAGES: Dict[str, str] = {
    "auth/user-not-found": "找不到此用戶",
    "auth/wrong-password": "密碼錯誤",
    "auth/email-already-in-use": "此 Email 已被使用",
    "auth/weak-password": "密碼強度不足",
    "auth/invalid-email": "Email 格式不正確",
    "auth/too-many-requests": "請求過於頻繁，請稍後再試",
    "auth/network-request-failed": "網路連接失敗",
}

FETCH_FAILED_MESSAGE = "獲取待辦事項失敗"
ADD_FAILED_MESSAGE = "新增待辦事項失敗"
UPDATE_FAILED_MESSAGE = "更新待辦事項失敗"
DELETE_FAILED_MESSAGE = "刪除待辦事項失敗"
CLEAR_ALL_FAILED_MESSAGE = "清除所有待辦事項失敗"


class GatewayError(Exception):
    """Raised when the identity gateway rejects or fails a request."""

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        super().__init__(message or code)


class StoreError(Exception):
    """Raised when a document store operation fails."""


# PUBLIC_INTERFACE
def get_error_message(code: str) -> str:
    """Translate a gateway error code to the message shown to users."""
    return AUTH_ERROR_MESSAGES.get(code, UNKNOWN_ERROR_MESSAGE)
