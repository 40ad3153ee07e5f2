"""Terminal chat browser fed by the snapshot bridge."""

from .chat_buffer import ChatBufferStore, ChatLine
from .events import EventDispatcher
from .tui_model import BrowserModel, RenderState, Window, visible_window

__all__ = [
    "BrowserModel",
    "ChatBufferStore",
    "ChatLine",
    "EventDispatcher",
    "RenderState",
    "Window",
    "visible_window",
]
