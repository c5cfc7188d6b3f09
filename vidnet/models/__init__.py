from vidnet.models.account import Account
from vidnet.models.subscription import Subscription
from vidnet.models.video import Video


__all__ = ["Account", "Subscription", "Video"]
