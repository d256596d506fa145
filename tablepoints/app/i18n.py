"""Message catalog for user-facing order and point-card errors."""

from __future__ import annotations

from typing import Dict

from config import get_settings

MESSAGE_CATALOG: Dict[str, Dict[str, str]] = {
    "zh": {
        "MISSING_RESTAURANT": "下单失败，缺少餐馆信息。",
        "EMPTY_CART": "购物车为空，请先选择菜品。",
        "INSUFFICIENT_POINTS": "点数不足，请联系管理员充值。",
        "RESTAURANT_CLOSED": "抱歉，本店已打烊，暂时无法下单。",
        "ONLINE_ORDERING_DISABLED": "线上点单已经关闭，仅支持线下点单",
        "AUTO_CLOSED": "抱歉，现在是休息时间 ({start} - {end})，暂时无法下单。",
        "CRITICAL": "下单时发生严重服务器错误，请稍后重试。",
        "UPDATE_MISSING_RESTAURANT": "更新失败，缺少餐馆信息。",
        "UPDATE_CRITICAL": "更新订单时发生严重服务器错误，请稍后重试。",
        "RESTAURANT_NOT_FOUND": "餐馆不存在。",
        "ORDER_NOT_FOUND": "订单不存在。",
        "CARD_NOT_FOUND": "点卡代码无效或不存在。",
        "CARD_ALREADY_USED": "此点卡已被餐馆 {used_by} 于 {used_at} 使用。",
        "CARD_IN_USE": "不能删除已使用的点卡。",
        "INVALID_CARD_BATCH": "点卡数量和点数必须是正数，且单次最多生成 {limit} 张。",
        "INVALID_NAME": "餐馆名称不能为空。",
        "TXN_CONFLICT": "操作冲突，请重试。",
    },
    "en": {
        "MISSING_RESTAURANT": "Order failed: restaurant information is missing.",
        "EMPTY_CART": "The cart is empty, please pick a dish first.",
        "INSUFFICIENT_POINTS": "Insufficient points, contact the administrator to recharge.",
        "RESTAURANT_CLOSED": "Sorry, the restaurant is closed for orders right now.",
        "ONLINE_ORDERING_DISABLED": "Online ordering is disabled, please order at the counter.",
        "AUTO_CLOSED": "Sorry, ordering is paused during rest hours ({start} - {end}).",
        "CRITICAL": "A server error occurred while placing the order, please retry.",
        "UPDATE_MISSING_RESTAURANT": "Update failed: restaurant information is missing.",
        "UPDATE_CRITICAL": "A server error occurred while updating the order, please retry.",
        "RESTAURANT_NOT_FOUND": "Restaurant not found.",
        "ORDER_NOT_FOUND": "Order not found.",
        "CARD_NOT_FOUND": "The point card code is invalid or does not exist.",
        "CARD_ALREADY_USED": "This point card was used by restaurant {used_by} at {used_at}.",
        "CARD_IN_USE": "A used point card cannot be deleted.",
        "INVALID_CARD_BATCH": "Card amount and points must be positive, at most {limit} cards per batch.",
        "INVALID_NAME": "The restaurant name must not be blank.",
        "TXN_CONFLICT": "The operation conflicted with another one, please retry.",
    },
}


def select_language(accept_language: str | None) -> str:
    """Pick the best supported language from the header."""

    default = get_settings().default_language
    if not accept_language:
        return default
    lang = accept_language.split(",")[0].split("-")[0].strip().lower()
    return lang if lang in MESSAGE_CATALOG else default


def get_msg(code: str, lang: str | None = None, **params: object) -> str:
    """Return the message for ``code`` in ``lang`` formatted with ``params``."""

    catalog = MESSAGE_CATALOG.get(lang or get_settings().default_language)
    if catalog is None:
        catalog = MESSAGE_CATALOG["zh"]
    template = catalog.get(code, code)
    return template.format(**params) if params else template
