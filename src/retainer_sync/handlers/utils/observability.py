"""
Shared Powertools instances for the retainer handlers.

Every handler, service and platform client logs, traces and emits metrics
through the three objects below, so a single invocation produces one structured
log stream, one trace and one EMF metrics blob.

Environment overrides:

- POWERTOOLS_SERVICE_NAME: service name on logs, traces and metrics
- POWERTOOLS_METRICS_NAMESPACE: CloudWatch namespace (defaults to ``RetainerSync``)
- POWERTOOLS_TRACE_DISABLED: set to "true" outside Lambda
- LOG_LEVEL: logger level
"""

import os

from aws_lambda_powertools.logging import Logger
from aws_lambda_powertools.metrics import Metrics
from aws_lambda_powertools.tracing import Tracer

SERVICE_NAME = os.environ.get('POWERTOOLS_SERVICE_NAME', 'retainer-sync')
METRICS_NAMESPACE = os.environ.get('POWERTOOLS_METRICS_NAMESPACE', 'RetainerSync')

logger: Logger = Logger(service=SERVICE_NAME)
tracer: Tracer = Tracer(service=SERVICE_NAME)
metrics: Metrics = Metrics(namespace=METRICS_NAMESPACE, service=SERVICE_NAME)
