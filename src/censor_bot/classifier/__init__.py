"""Remote content classification clients."""

from censor_bot.classifier.baidu import BaiduTextCensor, CensorResponse, to_verdict

__all__ = ["BaiduTextCensor", "CensorResponse", "to_verdict"]
