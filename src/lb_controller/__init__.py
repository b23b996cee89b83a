"""Load-balancer reconciliation controller.

The package keeps the routing state of a load-balancer backend (an F5 BIG-IP
style appliance or a cloud LBaaS REST service) in line with the pools, routes
and health monitors requested by the routing daemon:

* :mod:`lb_controller.models` abstracts the backends behind one interface;
* :class:`lb_controller.controller.LoadBalancerController` owns the cached
  registry and enforces create/delete semantics; and
* :class:`lb_controller.jobs.JobWaiter` polls asynchronous backend jobs.
"""

from .controller import LoadBalancerController, Pool, Route  # noqa: F401
from .errors import (  # noqa: F401
    AlreadyExists,
    BackendUnavailable,
    InvalidReference,
    JobFailed,
    JobTimeout,
    LBControllerError,
    NotFound,
)
from .naming import NameBuilder  # noqa: F401

__all__ = [
    "AlreadyExists",
    "BackendUnavailable",
    "InvalidReference",
    "JobFailed",
    "JobTimeout",
    "LBControllerError",
    "LoadBalancerController",
    "NameBuilder",
    "NotFound",
    "Pool",
    "Route",
]
