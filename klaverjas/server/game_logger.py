"""Game logger: one line per applied action in <logs_dir>/lobby_<code>.log

Format
------
  r<round>t<trick> <phase before> -> <phase after> | <action>
"""
import os
from typing import Optional

from .config import LOGS_DIR


class GameLogger:
    def __init__(self, lobby_code: str, logs_dir: Optional[str] = None):
        logs_dir = LOGS_DIR if logs_dir is None else logs_dir
        self._path = None
        if logs_dir:
            os.makedirs(logs_dir, exist_ok=True)
            self._path = os.path.join(logs_dir, f'lobby_{lobby_code}.log')

    @property
    def path(self) -> Optional[str]:
        return self._path

    def log_action(self, round_number: int, trick: Optional[int], before: str, after: str, action: str):
        if not self._path:
            return
        line = f'r{round_number}t{trick or 0} {before} -> {after} | {action}'
        with open(self._path, 'a', encoding='utf-8') as f:
            f.write(line + '\n')

    def log_event(self, text: str):
        if not self._path:
            return
        with open(self._path, 'a', encoding='utf-8') as f:
            f.write(f'# {text}\n')
