"""smoker - configuration resolution and client lifecycle for smoke tests.

Builds a configuration from files, S3 documents and SSM parameters, keeps the
resulting client configurations in a registry and constructs the service
clients (REST, MQTT, Kafka and AWS) a smoke test scenario talks to.
"""

__version__ = "1.0.0"
__author__ = "smoker maintainers"
