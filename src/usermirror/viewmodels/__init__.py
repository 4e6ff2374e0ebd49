from .signal import ObservableProperty, Signal
from .user_detail_viewmodel import UserDetailViewModel
from .user_list_viewmodel import UserListViewModel, ViewState

__all__ = [
    "ObservableProperty",
    "Signal",
    "UserDetailViewModel",
    "UserListViewModel",
    "ViewState",
]
