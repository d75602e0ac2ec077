"""Declarative remote operations bound to HTTP requests."""

from restbind._api import ProviderApi
from restbind._binders import (
    Binder,
    EndpointBinder,
    FormPart,
    HeaderBinder,
    HostPrefixBinder,
    MapBinder,
    MultipartFormBinder,
    PathSegmentBinder,
    PayloadBinder,
    QueryBinder,
    ReplacePayloadBinder,
    XmlPayloadBinder,
)
from restbind._builder import build_request
from restbind._config import ProviderConfig, RegistryConfig, TransportConfig
from restbind._descriptor import REQUIRED, EndpointPolicy, OperationDescriptor, Param
from restbind._engine import InvocationEngine
from restbind._errors import (
    AuthorizationError,
    BindingError,
    ConnectionFailed,
    ConstructionError,
    HttpResponseError,
    IllegalState,
    InvalidRequest,
    InvocationCancelled,
    Redirected,
    ResourceNotFound,
    ResponseParseError,
    RestBindError,
    TransportError,
    TransportTimeout,
    UnresolvedPlaceholder,
)
from restbind._fallbacks import (
    ExceptionParser,
    HttpErrorMapper,
    MapHttp4xxCodesToExceptions,
    ReturnFalseOnNotFound,
    ReturnNoneOnNotFound,
)
from restbind._filters import (
    BasicAuthenticationFilter,
    DateHeaderFilter,
    FilterChain,
    RequestFilter,
    TimestampCache,
    TokenHeaderFilter,
)
from restbind._models import Endpoint, Payload, RawResponse, RequestTemplate
from restbind._parsers import (
    ExtractViaRegex,
    ParseETagHeader,
    ParseFirstHeader,
    ParseXml,
    ReleasePayloadAndReturn,
    ResponseParser,
    ReturnBody,
    ReturnTrueIf2xx,
    XmlDeserializer,
    XmlHandler,
)
from restbind._registry import Registry, register_provider
from restbind._resolver import EndpointResolver
from restbind._transport import HttpxTransport, Transport
from restbind._uri import EncodingMode

__version__ = "0.1.0"

__all__ = [
    # Core
    "InvocationEngine",
    "ProviderApi",
    "OperationDescriptor",
    "Param",
    "REQUIRED",
    "EndpointPolicy",
    "EncodingMode",
    "build_request",
    "Registry",
    "register_provider",
    # Models
    "Endpoint",
    "Payload",
    "RequestTemplate",
    "RawResponse",
    # Binders
    "Binder",
    "MapBinder",
    "HeaderBinder",
    "QueryBinder",
    "PathSegmentBinder",
    "PayloadBinder",
    "EndpointBinder",
    "HostPrefixBinder",
    "ReplacePayloadBinder",
    "XmlPayloadBinder",
    "MultipartFormBinder",
    "FormPart",
    # Filters
    "RequestFilter",
    "FilterChain",
    "TimestampCache",
    "DateHeaderFilter",
    "BasicAuthenticationFilter",
    "TokenHeaderFilter",
    # Parsers
    "ResponseParser",
    "XmlHandler",
    "XmlDeserializer",
    "ParseXml",
    "ParseFirstHeader",
    "ParseETagHeader",
    "ExtractViaRegex",
    "ReturnBody",
    "ReturnTrueIf2xx",
    "ReleasePayloadAndReturn",
    "ExceptionParser",
    "HttpErrorMapper",
    "ReturnNoneOnNotFound",
    "ReturnFalseOnNotFound",
    "MapHttp4xxCodesToExceptions",
    # Resolution & transport
    "EndpointResolver",
    "Transport",
    "HttpxTransport",
    # Config
    "ProviderConfig",
    "TransportConfig",
    "RegistryConfig",
    # Errors
    "RestBindError",
    "ConstructionError",
    "UnresolvedPlaceholder",
    "BindingError",
    "TransportError",
    "ConnectionFailed",
    "TransportTimeout",
    "InvocationCancelled",
    "Redirected",
    "HttpResponseError",
    "InvalidRequest",
    "AuthorizationError",
    "ResourceNotFound",
    "IllegalState",
    "ResponseParseError",
    # Version
    "__version__",
]
