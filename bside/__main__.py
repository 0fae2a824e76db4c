import argparse
import logging
import os
import typing

import yaml

import bside.constants
import bside.generator
import bside.station


logger = logging.getLogger(__name__)


def load_config (config_path: str = 'config.yaml') -> dict:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		return yaml.safe_load(f) or {}


def build_generator (config: dict) -> bside.generator.PatternGenerator:

	"""
	Create the pattern generator named in the ``generator`` section.

	``provider: anthropic`` (the default) uses the Messages API;
	``provider: static`` cycles through a fixed ``patterns`` list and needs no
	network access.
	"""

	section = config.get('generator', {}) or {}
	provider = section.get('provider', 'anthropic')

	if provider == 'static':
		patterns = section.get('patterns') or [bside.constants.DEFAULT_PATTERN, bside.constants.FALLBACK_PATTERN]
		return bside.generator.StaticGenerator(patterns, bars=section.get('bars', bside.constants.DEFAULT_GENERATED_BARS))

	if provider == 'anthropic':
		kwargs: typing.Dict[str, typing.Any] = {}

		if 'model' in section:
			kwargs['model'] = section['model']

		if 'max_tokens' in section:
			kwargs['max_tokens'] = section['max_tokens']

		return bside.generator.AnthropicGenerator(**kwargs)

	raise ValueError(f"Unknown generator provider {provider!r}")


def build_station (config: dict) -> bside.station.Station:

	"""
	Create a station from a loaded config dict.
	"""

	tempo = config.get('tempo', {}) or {}
	queue = config.get('queue', {}) or {}
	agent = config.get('agent', {}) or {}

	station = bside.station.Station(
		bpm = tempo.get('bpm', bside.constants.DEFAULT_BPM),
		beats_per_bar = tempo.get('beats_per_bar', bside.constants.DEFAULT_BEATS_PER_BAR),
		initial_pattern = queue.get('initial_pattern', bside.constants.DEFAULT_PATTERN),
		initial_bars = queue.get('initial_bars', bside.constants.DEFAULT_PATTERN_BARS),
		generator = build_generator(config),
		min_queue_length = queue.get('min_length', bside.constants.MIN_QUEUE_LENGTH),
		target_queue_length = queue.get('target_length', bside.constants.TARGET_QUEUE_LENGTH),
		maintenance_interval = agent.get('maintenance_interval', bside.constants.MAINTENANCE_INTERVAL_SECONDS),
		major_change_threshold = agent.get('major_change_threshold', bside.constants.MAJOR_CHANGE_THRESHOLD),
		ticks_per_bar = tempo.get('ticks_per_bar', 1)
	)

	web_ui = config.get('web_ui', {}) or {}

	if web_ui.get('enabled', True):
		station.web_ui(port=web_ui.get('port', bside.constants.DEFAULT_WS_PORT), host=web_ui.get('host', '0.0.0.0'))

	osc = config.get('osc', {}) or {}

	if osc.get('enabled', False):
		station.osc(
			receive_port = osc.get('receive_port', 9000),
			send_port = osc.get('send_port', bside.constants.DEFAULT_OSC_PORT),
			send_host = osc.get('send_host', bside.constants.DEFAULT_OSC_HOST)
		)

	return station


def main (argv: typing.Optional[typing.List[str]] = None) -> None:

	"""
	Main entry point for the bside application.
	"""

	parser = argparse.ArgumentParser(prog="bside", description="Run a listener-steered pattern station.")
	parser.add_argument("config", nargs="?", default="config.yaml", help="Path to a YAML config file (default: config.yaml)")
	args = parser.parse_args(argv)

	config = load_config(args.config)

	level = (config.get('logging', {}) or {}).get('level', 'INFO')
	logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO))

	logger.info("B-Side starting...")

	station = build_station(config)
	station.play()


if __name__ == "__main__":
	main()
