# caixafacil/outputs/base.py
from abc import ABC, abstractmethod

class BaseOutput(ABC):
    @abstractmethod
    def write(self, transactions):
        """Write stored transaction rows (dicts) to the chosen sink and return its path."""
        pass
