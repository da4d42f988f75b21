from .account import Account
from .holding import Holding
