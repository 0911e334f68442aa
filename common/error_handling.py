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

import re
from typing import Optional

from common.analytics import get_logger

logger = get_logger(__name__)

GENERIC_FAILURE_MESSAGE = "Video generation failed. Please try again."
AUTHORIZATION_FAILURE_MESSAGE = (
    "Your API key could not be used for Veo. Veo is a paid-only model; "
    "please select an API key from a Google Cloud project with billing enabled."
)
DOWNLOAD_FAILURE_MESSAGE = (
    "Video generated, but it could not be downloaded. Please try again."
)

# Substrings the API returns for missing entities, bad keys and denied access.
AUTHORIZATION_PATTERNS = re.compile(
    r"requested entity was not found|api key not valid|api_key_invalid|permission_denied|permission denied",
    re.IGNORECASE,
)


class GenerationError(Exception):
    """Custom exception for video generation errors."""

    def __init__(self, message):
        self.message = message
        super().__init__(self.message)


class ValidationError(GenerationError):
    """A mode-required input is missing or an input is out of range."""


class EncodingError(GenerationError):
    """Local media could not be read or encoded."""


class TransportError(GenerationError):
    """Submission, status query or download failed at the HTTP layer."""

    def __init__(self, status_code: Optional[int], body: str, message: str = None):
        self.status_code = status_code
        self.body = body
        if message is None:
            message = f"Request failed with status {status_code}: {body}"
        super().__init__(message)


class RemoteFailure(GenerationError):
    """The job finished without a usable result."""


class PollingTimeoutError(RemoteFailure):
    """The job did not finish within the configured number of polls."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Operation did not complete after {attempts} status checks.")


class AuthorizationProblem(GenerationError):
    """A failure attributed to the selected credential."""

    def __init__(self, message, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class CredentialRequiredError(AuthorizationProblem):
    """No credential has been selected yet."""


class InvalidTransitionError(GenerationError):
    """The requested session transition is not legal in the current phase."""


class DownloadFailedError(GenerationError):
    """The job succeeded but its video could not be materialized."""

    def __init__(self, cause: TransportError):
        self.cause = cause
        super().__init__(str(cause))


def is_authorization_failure(message: str) -> bool:
    return bool(message) and AUTHORIZATION_PATTERNS.search(message) is not None


def classify_error(error: BaseException) -> GenerationError:
    """Maps any pipeline failure onto the taxonomy.

    Failures whose text names a missing entity, an invalid key or a denied
    permission become an AuthorizationProblem wrapping the underlying error.
    """
    if isinstance(error, AuthorizationProblem):
        return error
    if is_authorization_failure(str(error)):
        logger.info(f"Classified failure as an authorization problem: {error}")
        return AuthorizationProblem(str(error), cause=error)
    if isinstance(error, GenerationError):
        return error
    return GenerationError(f"An unexpected error occurred: {error}")


def user_message_for(error: GenerationError) -> str:
    """Returns the single user-facing message for a classified error."""
    if isinstance(error, AuthorizationProblem):
        return AUTHORIZATION_FAILURE_MESSAGE
    if isinstance(error, DownloadFailedError):
        return DOWNLOAD_FAILURE_MESSAGE
    return GENERIC_FAILURE_MESSAGE
