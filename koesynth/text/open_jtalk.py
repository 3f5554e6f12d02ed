"""
pyopenjtalk-backed text analyzer.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union
import tempfile
import threading

import pyopenjtalk

from koesynth.errors import TextAnalysisFailure, UserDictFailure
from koesynth.logging_utils import get_logger
from koesynth.text.user_dict import UserDict

logger = get_logger(__name__)


class OpenJtalk:
    """
    Produces OpenJTalk full-context labels for Japanese text.

    pyopenjtalk keeps a process-wide analyzer, so every call goes through one lock.
    """

    def __init__(self, dict_dir: Optional[Union[str, Path]] = None):
        self._lock = threading.Lock()
        self._user_dict_dir: Optional[tempfile.TemporaryDirectory] = None
        if dict_dir is not None:
            dict_dir = Path(dict_dir)
            if not dict_dir.is_dir():
                raise FileNotFoundError(f"OpenJTalk dictionary not found at {dict_dir}")
            pyopenjtalk.OPEN_JTALK_DICT_DIR = str(dict_dir).encode("utf-8")
        self.dict_dir = dict_dir
        logger.info("open_jtalk_initialized dict_dir=%s", dict_dir or "<bundled>")

    def extract_fullcontext(self, text: str) -> List[str]:
        with self._lock:
            try:
                return list(pyopenjtalk.extract_fullcontext(text))
            except (RuntimeError, ValueError, UnicodeError) as exc:
                raise TextAnalysisFailure(text, f"OpenJTalk failed: {exc}") from exc

    def use_user_dict(self, user_dict: UserDict) -> None:
        """
        Install ``user_dict`` for subsequent analyses.

        Later edits to ``user_dict`` take effect only after calling this again.
        An empty dictionary removes any installed one.
        """
        with self._lock:
            if len(user_dict) == 0:
                pyopenjtalk.unset_user_dict()
                self._release_user_dict_dir()
                logger.info("user_dict_unset")
                return
            workdir = tempfile.TemporaryDirectory(prefix="koesynth-dict-")
            csv_path = Path(workdir.name) / "user.csv"
            dic_path = Path(workdir.name) / "user.dic"
            try:
                csv_path.write_text(user_dict.to_mecab_csv(), encoding="utf-8")
                pyopenjtalk.mecab_dict_index(str(csv_path), str(dic_path))
                if not dic_path.exists():
                    raise RuntimeError("MeCab dictionary compilation produced no output")
                pyopenjtalk.update_global_jtalk_with_user_dict(str(dic_path))
            except (OSError, RuntimeError, ValueError) as exc:
                workdir.cleanup()
                raise UserDictFailure(str(dic_path), f"failed to install user dictionary: {exc}") from exc
            self._release_user_dict_dir()
            self._user_dict_dir = workdir
            logger.info("user_dict_installed words=%s", len(user_dict))

    def _release_user_dict_dir(self) -> None:
        if self._user_dict_dir is not None:
            self._user_dict_dir.cleanup()
            self._user_dict_dir = None
