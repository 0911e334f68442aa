# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from typing import Callable, Optional

from common.analytics import get_logger
from config.default import Default

logger = get_logger(__name__)


class CredentialProvider:
    """Answers whether an API key is selected and lets the user pick one.

    The selection UI lives outside this package; ``open_select_key`` is the
    hook it plugs into.
    """

    def has_selected_api_key(self) -> bool:
        return bool(self.get_api_key())

    def get_api_key(self) -> Optional[str]:
        raise NotImplementedError

    def open_select_key(self) -> None:
        raise NotImplementedError


class EnvironmentCredentialProvider(CredentialProvider):
    """Reads the Gemini API key from configuration.

    An optional ``selector`` callback is invoked when the session asks for a
    new key; it returns the chosen key or None when the user cancels.
    """

    def __init__(
        self,
        config: Default = None,
        selector: Optional[Callable[[], Optional[str]]] = None,
    ):
        self.config = config or Default()
        self._api_key = self.config.GEMINI_API_KEY or None
        self._selector = selector

    def get_api_key(self) -> Optional[str]:
        return self._api_key

    def open_select_key(self) -> None:
        if self._selector is None:
            logger.warning(
                "API key selection requested but no selector is configured; "
                "set GEMINI_API_KEY."
            )
            return
        selected = self._selector()
        if selected:
            logger.info("A new API key was selected.")
            self._api_key = selected
        else:
            logger.info("API key selection was cancelled.")


def redact_key(url: str, api_key: Optional[str]) -> str:
    """Hides the API key in a URL before it is logged."""
    if api_key:
        return url.replace(api_key, "***")
    return url
