"""
Error taxonomy for SearchScope

Every failure the core can surface maps to one of these types. Each carries
the HTTP-equivalent status the dashboard (or any request layer) reports.
"""

from typing import Dict, List, Optional


class SearchScopeError(Exception):
    """Base class for all errors raised by SearchScope"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict:
        return {'message': self.message, 'error': type(self).__name__}


class ExternalApiError(SearchScopeError):
    """Search Console fetch failed or returned no data envelope"""

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status

    def to_dict(self) -> Dict:
        body = super().to_dict()
        if self.upstream_status is not None:
            body['upstreamStatus'] = self.upstream_status
        return body


class AnalysisUpstreamError(SearchScopeError):
    """The generative-text call itself failed (network, auth, rate limit)"""

    status_code = 502


class AnalysisParseError(SearchScopeError):
    """The model's reply could not be coerced into the analysis structure"""

    status_code = 500

    def __init__(self, message: str, raw_text: str = ''):
        super().__init__(message)
        self.raw_text = raw_text


class ValidationError(SearchScopeError):
    """Malformed caller input"""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict:
        body = super().to_dict()
        body['errors'] = self.errors
        return body

    @classmethod
    def from_pydantic(cls, exc, message: str = "Invalid input") -> 'ValidationError':
        """Build from a pydantic ValidationError, keeping field-level detail"""
        errors = [
            {
                'field': '.'.join(str(part) for part in err.get('loc', ())),
                'message': err.get('msg', ''),
                'type': err.get('type', '')
            }
            for err in exc.errors()
        ]
        return cls(message, errors)

    @classmethod
    def missing(cls, fields: List[str], message: str = "Missing required parameters") -> 'ValidationError':
        return cls(
            message,
            [{'field': f, 'message': 'Field required', 'type': 'missing'} for f in fields]
        )


class AuthError(SearchScopeError):
    """Credentials are missing, invalid or could not be refreshed"""

    status_code = 401


class NotFoundError(SearchScopeError):
    """A referenced entity does not exist"""

    status_code = 404
