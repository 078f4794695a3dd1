# Copyright 2021-present Kensho Technologies, LLC.
from typing import Any, Callable, Dict, List, Literal, Optional

from graphql import GraphQLNamedType


# A record as exchanged with the host admin layer: either flat with dotted-path keys,
# or nested the way GraphQL variables and results are.
ParamsType = Dict[str, Any]

# The error payloads of a GraphQL response, e.g. [{"message": "...", "path": [...]}]
GraphQLErrorPayloads = List[Dict[str, Any]]

# Observer invoked with every error before it propagates to the caller. The second argument
# carries the original GraphQL error payloads when the error came from the remote endpoint.
ErrorObserver = Callable[[Exception, Optional[GraphQLErrorPayloads]], None]

# Produces the extra HTTP headers to send with each request, e.g. for API-key authentication.
HeadersFactory = Callable[[], Dict[str, str]]

# Full dotted property path -> named GraphQL type that the walk resolved for it.
TypeMap = Dict[str, GraphQLNamedType]

SortDirection = Literal["asc", "desc"]
