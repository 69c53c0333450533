from logtap.clients.poller import HeadPoller, LogPoller
from logtap.clients.rpc import RPC, BlockSource

__all__ = ["RPC", "BlockSource", "HeadPoller", "LogPoller"]
