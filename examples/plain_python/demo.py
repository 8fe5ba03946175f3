"""
Plain Python demo of stderr collection.

This example demonstrates:
1. Starting a LogCollector that captures fd 2
2. Size-triggered flushing (max_buffer_size=3)
3. Immediate forwarding once buffering is turned off
4. Draining on stop()

Run this script to see captured lines arrive as "Log" custom events.
Output written to stderr still shows up in the terminal.
"""

import os
import sys

from rum_logs import InMemoryAgent, LogBufferConfiguration, LogCollector


def main():
    agent = InMemoryAgent()
    config = LogBufferConfiguration(enabled=True, max_buffer_size=3, flush_interval=60)
    collector = LogCollector(agent=agent, config=config)

    with collector:
        # Python-level writes
        print("first line", file=sys.stderr)
        print("second line", file=sys.stderr)
        # Descriptor-level writes (what C libraries do)
        os.write(2, b"third line\n\nfourth line\n")
        sys.stderr.flush()

        config.enabled = False
        print("sent immediately", file=sys.stderr)

    print("\n" + "=" * 60)
    print(f"Agent received {len(agent.events)} event(s):")
    for name, attrs in agent.events:
        print(f"  {name}: [{attrs['log.level']}] {attrs['log.message']} @ {attrs['log.timestamp']}")
    print(f"Buffered after stop: {collector.buffered_count}")


if __name__ == "__main__":
    main()
