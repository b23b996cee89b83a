"""oslo.config options for INI style daemon configuration.

Deployments that still ship the classic ``load-balancer.conf`` layout can
point the daemon at an INI file instead of YAML; both produce the same
:class:`~routing_daemon.config.DaemonConfig`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from oslo_config import cfg

from lb_controller.config import (
    BACKEND_TYPES,
    BackendConfig,
    F5Settings,
    LBaaSSettings,
    MonitorConfig,
)
from lb_controller.naming import NameBuilder

from .config import SUBSCRIPTION_TYPES, DaemonConfig, SubscriptionConfig

default_opts = [
    cfg.StrOpt('load_balancer',
               default='f5',
               choices=list(BACKEND_TYPES),
               help='Backend model driving the load balancer.'),
    cfg.StrOpt('virtual_endpoint',
               help='Virtual server/VIP routes are attached to. '
                    'Routes are not attached when unset.'),
    cfg.FloatOpt('job_poll_interval',
                 default=1.0,
                 help='Seconds between status polls of asynchronous jobs.'),
    cfg.FloatOpt('job_timeout',
                 default=60.0,
                 help='Seconds to wait for asynchronous jobs to complete.'),
]

naming_opts = [
    cfg.StrOpt('pool_prefix', default='lb'),
    cfg.StrOpt('route_prefix', default='route'),
    cfg.StrOpt('monitor_prefix', default='monitor'),
    cfg.BoolOpt('create_routes',
                default=True,
                help='Create a /<app> route for every application pool.'),
]

f5_opts = [
    cfg.StrOpt('host', default='127.0.0.1'),
    cfg.StrOpt('username', default='admin'),
    cfg.StrOpt('password', default='passwd', secret=True),
    cfg.StrOpt('partition', default='Common'),
    cfg.BoolOpt('verify_tls', default=True),
]

lbaas_opts = [
    cfg.StrOpt('host'),
    cfg.StrOpt('keystone_host'),
    cfg.StrOpt('username'),
    cfg.StrOpt('password', secret=True),
    cfg.StrOpt('tenant'),
    cfg.BoolOpt('verify_tls', default=True),
]

monitor_opts = [
    cfg.BoolOpt('enabled',
                default=False,
                help='Create a health monitor for every application pool.'),
    cfg.StrOpt('path', default='/'),
    cfg.StrOpt('up_code', default='200'),
    cfg.StrOpt('type', default='http'),
    cfg.IntOpt('interval', default=5),
    cfg.IntOpt('timeout', default=16),
]

subscription_opts = [
    cfg.StrOpt('type', default='spool', choices=list(SUBSCRIPTION_TYPES)),
    cfg.StrOpt('path', help='Spool directory for the spool subscription.'),
    cfg.FloatOpt('interval', default=1.0),
    cfg.FloatOpt('retry_interval', default=5.0),
    cfg.StrOpt('url', help='Redis URL for the redis subscription.'),
    cfg.StrOpt('stream', default='routing'),
    cfg.StrOpt('group', default='routing-daemon'),
    cfg.StrOpt('consumer'),
]


def register_opts(conf: cfg.ConfigOpts) -> None:
    conf.register_opts(default_opts)
    conf.register_opts(naming_opts, group='naming')
    conf.register_opts(f5_opts, group='f5')
    conf.register_opts(lbaas_opts, group='lbaas')
    conf.register_opts(monitor_opts, group='monitor')
    conf.register_opts(subscription_opts, group='subscription')


def _lbaas_settings(conf: cfg.ConfigOpts) -> LBaaSSettings:
    group = conf.lbaas
    missing = [name for name in ('host', 'keystone_host', 'username', 'password', 'tenant')
               if not getattr(group, name)]
    if missing:
        raise ValueError(f"[lbaas] missing {', '.join(missing)}")
    return LBaaSSettings(
        host=group.host,
        keystone_host=group.keystone_host,
        username=group.username,
        password=group.password,
        tenant=group.tenant,
        verify_tls=group.verify_tls,
    )


def load_oslo_config(paths: Iterable[Path]) -> DaemonConfig:
    conf = cfg.ConfigOpts()
    register_opts(conf)
    conf(args=[], project='routing-daemon',
         default_config_files=[str(path) for path in paths])

    backend = BackendConfig(
        type=conf.load_balancer,
        virtual_endpoint=conf.virtual_endpoint or None,
        job_poll_interval=conf.job_poll_interval,
        job_timeout=conf.job_timeout,
        f5=F5Settings(
            host=conf.f5.host,
            username=conf.f5.username,
            password=conf.f5.password,
            partition=conf.f5.partition,
            verify_tls=conf.f5.verify_tls,
        ),
        lbaas=_lbaas_settings(conf) if conf.load_balancer == 'lbaas' else None,
    )

    sub = conf.subscription
    options = {key: getattr(sub, key)
               for key in ('url', 'stream', 'group', 'consumer')
               if getattr(sub, key)}
    subscription = SubscriptionConfig(
        type=sub.type,
        path=Path(sub.path) if sub.path else None,
        interval=sub.interval,
        retry_interval=sub.retry_interval,
        options=options,
    )

    monitor = None
    if conf.monitor.enabled:
        monitor = MonitorConfig(
            path=conf.monitor.path,
            up_code=conf.monitor.up_code,
            type=conf.monitor.type,
            interval=conf.monitor.interval,
            timeout=conf.monitor.timeout,
        )

    return DaemonConfig(
        backend=backend,
        subscription=subscription,
        names=NameBuilder(
            pool_prefix=conf.naming.pool_prefix,
            route_prefix=conf.naming.route_prefix,
            monitor_prefix=conf.naming.monitor_prefix,
        ),
        create_routes=conf.naming.create_routes,
        monitor=monitor,
    )
