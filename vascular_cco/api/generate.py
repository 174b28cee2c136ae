"""
One-call tree generation.

UNIT CONVENTIONS
----------------
All geometric values are in METERS internally.
"""

from typing import Any, Dict, Optional, Tuple, Union
import logging

from ..analysis.integrity import IntegrityReport, TreeIntegrity
from ..cco.config import CCOConfig
from ..cco.driver import ConstrainedConstructiveOptimization
from ..cco.interfaces import ProgressReporter
from ..core.domain import DomainSpec, domain_from_dict
from ..core.tree import ArterialTree

logger = logging.getLogger(__name__)


def generate_tree(
    domain: Union[DomainSpec, Dict[str, Any]],
    config: Union[CCOConfig, Dict[str, Any], None] = None,
    progress: Optional[ProgressReporter] = None,
    check_integrity: bool = True,
) -> Tuple[ArterialTree, Optional[IntegrityReport]]:
    """
    Grow a complete arterial tree inside a domain.

    Parameters
    ----------
    domain : DomainSpec or dict
        Growth domain, or its ``to_dict()`` form.
    config : CCOConfig or dict, optional
        Growth parameters. Defaults to ``CCOConfig()``.
    progress : ProgressReporter, optional
        Progress sink. Defaults to logging.
    check_integrity : bool
        Run TreeIntegrity on the result.

    Returns
    -------
    tree : ArterialTree
        The grown tree.
    report : IntegrityReport or None
        Integrity report, or None when ``check_integrity`` is False.

    Raises
    ------
    ConfigurationError
        If the configuration is invalid.
    AttemptExhaustionError
        If a terminal cannot be placed within the attempt budget.
    """
    if isinstance(domain, dict):
        domain = domain_from_dict(domain)
    if config is None:
        config = CCOConfig()
    elif isinstance(config, dict):
        config = CCOConfig.from_dict(config)

    cco = ConstrainedConstructiveOptimization.from_config(domain, config, progress=progress)
    cco.grow_root()
    tree = cco.grow()

    logger.info(
        f"Generated tree: {len(tree)} segments, {tree.terminal_count} terminals, "
        f"root radius {tree.root.radius:.4g} m"
    )

    report = None
    if check_integrity:
        report = TreeIntegrity(tree).check()
        if not report.passed:
            logger.warning(
                f"Integrity check found {len(report.violations)} violation(s) in the generated tree"
            )
    return tree, report
