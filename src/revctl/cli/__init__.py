import logging
import sys

from typing import List, Optional
from typing_extensions import Annotated

import typer.core

typer.core.rich = None

import typer  # noqa: E402

from ..config import Settings  # noqa: E402


app = typer.Typer(add_completion=False)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option('--verbose', '-v', envvar='REVCTL_VERBOSE')] = False,
    debug: Annotated[bool, typer.Option('--debug', '-d', envvar='REVCTL_DEBUG')] = False,
) -> None:
    """
    Revision controller.
    """
    setattr(ctx, 'obj', {})

    logging.basicConfig(
        level=logging.ERROR,
        format='%(levelname)s: %(module)s: %(message)s',
        stream=sys.stderr,
    )
    log = logging.getLogger('revctl')
    log_level = logging.ERROR
    if verbose:
        log_level = logging.INFO
    elif debug:
        log_level = logging.DEBUG
    log.setLevel(log_level)
    ctx.obj['log_level'] = log_level
    ctx.obj['log'] = log
    ctx.obj['debug'] = debug


@app.command(name='run', short_help='Run the revision controller')
def run(
    ctx: typer.Context,
    workers: Annotated[
        int,
        typer.Option(
            '--workers', min=1, envvar='REVCTL_WORKERS',
            help='Number of revisions reconciled in parallel.',
        ),
    ] = Settings.workers,
    all_namespaces: Annotated[
        bool,
        typer.Option(
            '--all-namespaces', envvar='REVCTL_ALL_NAMESPACES',
            help='Watch all namespaces.',
        ),
    ] = False,
    namespaces: Annotated[
        Optional[List[str]],
        typer.Option(
            '--namespace', envvar='REVCTL_NAMESPACE',
            help='Watch the given namespaces instead of the default. Can be given multiple times.',
        ),
    ] = None,
    namespace_suffix: Annotated[
        str,
        typer.Option(
            '--namespace-suffix', envvar='REVCTL_NAMESPACE_SUFFIX',
            help=('Suffix of the namespaces the child resources are created in. '
                  'Children outside the revisions namespace get no owner reference '
                  'and are only removed by the delete path.'),
        ),
    ] = Settings.namespace_suffix,
    release_finalizer: Annotated[
        bool,
        typer.Option(
            '--release-finalizer', envvar='REVCTL_RELEASE_FINALIZER',
            help='Remove the finalizer from deleted revisions once their children are gone.',
        ),
    ] = False,
    resync_after: Annotated[
        int,
        typer.Option(
            '--resync-after', min=1, envvar='REVCTL_RESYNC_AFTER',
            help='Seconds between full relists of the watched revisions.',
        ),
    ] = Settings.resync_after,
) -> None:
    settings = Settings(
        workers=workers,
        namespaces=namespaces or [],
        all_namespaces=all_namespaces,
        namespace_suffix=namespace_suffix,
        release_finalizer=release_finalizer,
        resync_after=resync_after,
    )
    ctx.obj['log'].info('settings: %s', settings)

    from ..manager import Manager

    manager = Manager(settings)
    manager.run(debug=ctx.obj['debug'])


@app.command(name='crd', short_help='Print the CustomResourceDefinition of Revision')
def crd(
    ctx: typer.Context,
) -> None:
    from .. import resources
    # Importing the model registers its crd.
    from ..revision import Revision  # noqa: F401

    crds = resources.all_crds()
    crds_yaml = resources.resources_to_yaml(*crds)
    print(crds_yaml)


if __name__ == '__main__':
    app()
