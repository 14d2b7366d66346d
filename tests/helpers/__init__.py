from .devtools_log import network_records_to_devtools_log
from .metric_delta import histogram_observes, metric_delta, sample_value

__all__ = ["histogram_observes", "metric_delta", "network_records_to_devtools_log", "sample_value"]
