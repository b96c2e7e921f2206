import argparse
import logging
import os
import signal
import sys
import threading

from .accessors import KnownGoodAccessor, LatestVersionAccessor
from .clock import SystemClock
from .config import load_config
from .controller import Orchestrator
from .detectors import StatusAggregator, WatchdogStatusGetter, WatchdogStatusPutter
from .k8s_client import KubernetesClient, load_kube_config
from .manifest import DataRepositoryManifestFetcher
from .models import PodIdentifier
from .remediators import PodEvicter
from .state import HealthMonitor


def run_orchestrator(config, client, clock) -> int:
    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    orchestrator = Orchestrator(
        config=config,
        clock=clock,
        client=client,
        manifest_fetcher=DataRepositoryManifestFetcher(config.data_repo_url),
        known_good_accessor=KnownGoodAccessor(client),
        latest_version_accessor=LatestVersionAccessor(client),
        evicter=PodEvicter(client),
        stop_event=stop,
    )

    print(f"🚑 AutoCrane orchestrator started, watching namespaces: {', '.join(config.namespaces)}")
    try:
        return orchestrator.run()
    except KeyboardInterrupt:
        print("\n👋 Shutting down orchestrator")
        return 0


def run_healthz(config, client, clock, host: str, port: int) -> int:
    import uvicorn

    from .healthz import create_app

    if not config.pod_namespace or not config.pod_name:
        logging.getLogger(__name__).error("POD_NAMESPACE and POD_NAME must be set")
        return 3

    if not config.namespaces:
        config.namespaces = [config.pod_namespace]

    monitor = HealthMonitor(clock, WatchdogStatusGetter(client), config.min_healthy)
    pod_id = PodIdentifier(config.pod_namespace, config.pod_name)
    app = create_app(monitor, pod_id, WatchdogStatusPutter(client, clock))
    uvicorn.run(app, host=host, port=port)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="autocrane")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("orchestrate", help="run the rollout and eviction loop")
    healthz = sub.add_parser("healthz", help="serve the watchdog liveness endpoint")
    healthz.add_argument("--host", default="0.0.0.0")
    healthz.add_argument("--port", type=int, default=8080)
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv("AUTOCRANE_LOG_LEVEL", "INFO").upper())

    config = load_config()
    load_kube_config()
    clock = SystemClock()
    client = KubernetesClient(config, StatusAggregator())

    if args.command == "orchestrate":
        return run_orchestrator(config, client, clock)
    return run_healthz(config, client, clock, args.host, args.port)


if __name__ == "__main__":
    sys.exit(main())
