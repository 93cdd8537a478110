"""Jinja2 templates for the configuration files uploaded to nodes."""

from __future__ import annotations

from typing import Any

import jinja2

_ENV = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
    trim_blocks=True,
)

LOG4J = """\
log4j.rootLogger=INFO, fileAppender
log4j.appender.fileAppender=org.apache.log4j.DailyRollingFileAppender
log4j.appender.fileAppender.DatePattern='.'yyyy-MM-dd-HH
log4j.appender.fileAppender.File={{ log_dir }}/server.log
log4j.appender.fileAppender.layout=org.apache.log4j.PatternLayout
log4j.appender.fileAppender.layout.ConversionPattern=[%d] %p %m (%c)%n

{% for line in extra %}
{{ line }}
{% endfor %}
"""

ZOOKEEPER_PROPERTIES = """\
dataDir={{ data_dir }}
clientPort={{ client_port }}
maxClientCnxns=0
initLimit=5
syncLimit=2
{% for index, host in peers %}
server.{{ index }}={{ host }}:2888:3888
{% endfor %}
"""

BROKER_PROPERTIES = """\
broker.id={{ broker_id }}
listeners=PLAINTEXT://:{{ port }}
advertised.listeners=PLAINTEXT://{{ hostname }}:{{ port }}
log.dirs={{ data_dir }}
zookeeper.connect=%{zkConnect}
{% for key, value in conf %}
{{ key }}={{ value }}
{% endfor %}
"""


def render(template: str, **context: Any) -> str:
    return _ENV.from_string(template).render(**context)
