"""
Entry point: ``python -m zeebe_operator`` or the ``zeebe-operator`` script.
Equivalent to ``kopf run -m zeebe_operator.operator --standalone``.
"""
import logging

import kopf

from zeebe_operator.config import settings


def main():
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    import zeebe_operator.operator  # noqa: F401  registers the kopf handlers

    if settings.WATCH_NAMESPACE:
        kopf.run(standalone=True, namespaces=[settings.WATCH_NAMESPACE])
    else:
        kopf.run(standalone=True, clusterwide=True)


if __name__ == "__main__":
    main()
