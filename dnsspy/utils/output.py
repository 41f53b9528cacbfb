"""
Rendering of tailed records for the terminal
"""

import sys
from typing import Callable, TextIO

from dnsspy.errors import ConsumerDisconnected
from dnsspy.models.records import DNSQuery, RawRecord

OUTPUT_FORMATS = ('default', 'json')

ROW_FORMAT = '%-5s %-45s %-14s'


def header() -> str:
    return ROW_FORMAT % ('query', 'name', 'timestamp')


def render_default(record: RawRecord) -> str:
    """One column-aligned row per query; bodies that are not query log entries are passed through"""
    query = DNSQuery.from_message(record.message)
    if query is None:
        return record.message
    return ROW_FORMAT % (query.query_type, query.query_name, query.query_timestamp)


def render_json(record: RawRecord) -> str:
    return record.message


RENDERERS = {
    'default': render_default,
    'json': render_json,
}


def make_sink(output_format: str = 'default', stream: TextIO = None) -> Callable[[RawRecord], None]:
    """
    Build an engine sink writing rendered records to ``stream``

    The header row is written immediately for the default format. A closed
    pipe raises ConsumerDisconnected so the engine ends cleanly.
    """
    if output_format not in RENDERERS:
        raise ValueError(f"Invalid output type: {output_format}")
    if stream is None:
        stream = sys.stdout
    render = RENDERERS[output_format]

    def write(line: str):
        try:
            stream.write(line + '\n')
            stream.flush()
        except BrokenPipeError as e:
            raise ConsumerDisconnected('Output stream closed') from e

    if output_format == 'default':
        write(header())

    def sink(record: RawRecord):
        write(render(record))

    return sink
