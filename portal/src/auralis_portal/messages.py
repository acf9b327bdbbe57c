"""User-facing messages for the login and registration flows (zh-CN)."""

from __future__ import annotations

from typing import Final

LOGIN_BAD_CREDENTIALS: Final[str] = "用户名或密码错误"
LOGIN_INCOMPLETE: Final[str] = "请填写完整的登录信息"
LOGIN_FAILED: Final[str] = "登录失败"
LOGIN_NO_TOKEN: Final[str] = "登录成功但未返回令牌"
LOGIN_OK: Final[str] = "登录成功"

REGISTER_NAME_TAKEN: Final[str] = "该用户名已存在"
REGISTER_INVALID: Final[str] = "用户名或密码不符合要求"
REGISTER_FAILED: Final[str] = "注册失败"
REGISTER_SUCCESS: Final[str] = "注册成功，请前往登录"

LOGGED_OUT: Final[str] = "已退出登录"
SESSION_EXPIRED: Final[str] = "登录已过期，请重新登录"
REQUEST_FAILED: Final[str] = "请求失败"


def login_error_message(status_code: int) -> str:
    if status_code == 401:
        return LOGIN_BAD_CREDENTIALS
    if status_code == 400:
        return LOGIN_INCOMPLETE
    return f"{LOGIN_FAILED}：{status_code}"


def register_error_message(status_code: int) -> str:
    if status_code == 409:
        return REGISTER_NAME_TAKEN
    if status_code == 400:
        return REGISTER_INVALID
    return f"{REGISTER_FAILED}：{status_code}"


def request_error_message(status_code: int) -> str:
    return f"{REQUEST_FAILED}：{status_code}"
