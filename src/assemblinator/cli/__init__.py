"""CLI commands for Assemblinator."""

import functools
import sys
import time
from datetime import datetime, timezone

import click

from ..app import Assemblinator
from ..database.engine import create_database_engine
from ..logging import setup_logging, get_logger
from ..notify.channel import RealtimeChannel, RealtimeChannelError
from ..utils.timezone import format_datetime_short, parse_datetime
from ..voting.errors import DuplicateVote, VotingError
from ..voting.presence import build_presence_link, render_presence_qr
from ..voting.states import AgendaItemStatus, VotingMode
from ..voting.types import Actor, Role

logger = get_logger(__name__)

ROLE_CHOICES = [role.value for role in Role]


def handle_errors(f):
    """Report voting errors as one line instead of a traceback."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except DuplicateVote:
            click.echo("Ballot already recorded for this agenda item.")
        except VotingError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    return wrapper


def get_app(ctx) -> Assemblinator:
    """Build the application once per invocation."""
    if "app" not in ctx.obj:
        engine = create_database_engine(ctx.obj.get("database_url"))
        app = Assemblinator(engine=engine)
        ctx.obj["app"] = app
        ctx.call_on_close(app.close)
    return ctx.obj["app"]


def format_bar(percentage: float) -> str:
    """Ten-cell text bar for a percentage."""
    filled = int(percentage / 10)
    return "█" * filled + "░" * (10 - filled)


@click.group()
@click.option('--database-url', envvar='DATABASE_URL', default=None, help='SQLAlchemy database URL')
@click.option('--actor', 'actor_id', envvar='ASSEMBLY_ACTOR_ID', default='cli-admin', help='Acting voter id')
@click.option('--role', envvar='ASSEMBLY_ACTOR_ROLE', default='admin',
              type=click.Choice(ROLE_CHOICES), help='Acting role')
@click.pass_context
def cli(ctx, database_url, actor_id, role):
    """Assemblinator - condominium assembly presence and voting."""
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url
    ctx.obj["actor"] = Actor(voter_id=actor_id, role=Role(role))
    setup_logging()


@cli.command('init-db')
@click.pass_context
def init_db(ctx):
    """Create the database tables."""
    get_app(ctx)
    click.echo("Database initialized.")


# ==================== Assemblies ====================

@cli.command()
@click.argument('condominium_id')
@click.argument('title')
@click.option('--when', 'scheduled', required=True, help='Date and time, e.g. "05/11/2026 19:00"')
@click.option('--topic', 'topics', multiple=True, help='Agenda topic (repeatable)')
@click.option('--agenda-url', default=None, help='Agenda (edital) document URL')
@click.pass_context
@handle_errors
def create(ctx, condominium_id, title, scheduled, topics, agenda_url):
    """Schedule an assembly."""
    scheduled_at = parse_datetime(scheduled)
    if scheduled_at is None:
        raise click.BadParameter(f"Cannot parse date '{scheduled}'", param_hint='--when')
    assembly = get_app(ctx).assemblies.create_assembly(
        ctx.obj["actor"], condominium_id, title, scheduled_at,
        agenda_topics=list(topics), agenda_document_url=agenda_url,
    )
    click.echo(f"Assembly created: {assembly.id}")


@cli.command('list')
@click.option('--condo', 'condominium_id', default=None, help='Only this condominium')
@click.pass_context
def list_assemblies(ctx, condominium_id):
    """List assemblies, newest first."""
    assemblies = get_app(ctx).assemblies.list_assemblies(condominium_id)
    if not assemblies:
        click.echo("No assemblies.")
        return
    for assembly in assemblies:
        click.echo(
            f"{assembly.id}  {assembly.status.value:<12} "
            f"{format_datetime_short(assembly.scheduled_at)}  {assembly.title}"
        )


@cli.command()
@click.argument('assembly_id')
@click.pass_context
@handle_errors
def show(ctx, assembly_id):
    """Show an assembly with its agenda."""
    app = get_app(ctx)
    assembly = app.assemblies.get_assembly(assembly_id)
    click.echo(f"{assembly.title}")
    click.echo(f"  Status: {assembly.status.value}")
    click.echo(f"  Date: {format_datetime_short(assembly.scheduled_at)}")
    click.echo(f"  Present: {app.presence.count_presences(assembly_id)}")
    for topic in assembly.agenda_topics or []:
        click.echo(f"  - {topic}")

    items = app.agenda.list_items(assembly_id)
    if items:
        click.echo("\nAgenda:")
    for item in items:
        click.echo(f"  {item.order}. {item.title} [{item.status.value}, {item.voting_mode.value}] {item.id}")
        click.echo(f"     Options: {', '.join(item.options)}")


@cli.command()
@click.argument('assembly_id')
@click.pass_context
@handle_errors
def start(ctx, assembly_id):
    """Start an assembly (scheduled -> in_progress)."""
    get_app(ctx).assemblies.start(ctx.obj["actor"], assembly_id)
    click.echo("Assembly started.")


@cli.command()
@click.argument('assembly_id')
@click.pass_context
@handle_errors
def close(ctx, assembly_id):
    """Close an assembly (in_progress -> closed)."""
    get_app(ctx).assemblies.close(ctx.obj["actor"], assembly_id)
    click.echo("Assembly closed.")


@cli.command()
@click.argument('assembly_id')
@click.pass_context
@handle_errors
def cancel(ctx, assembly_id):
    """Cancel a scheduled or in-progress assembly."""
    get_app(ctx).assemblies.cancel(ctx.obj["actor"], assembly_id)
    click.echo("Assembly cancelled.")


@cli.command()
@click.argument('assembly_id')
@click.confirmation_option(prompt='Delete the assembly with all its items, presences and ballots?')
@click.pass_context
@handle_errors
def delete(ctx, assembly_id):
    """Delete an assembly."""
    get_app(ctx).assemblies.delete_assembly(ctx.obj["actor"], assembly_id)
    click.echo("Assembly deleted.")


# ==================== Agenda items ====================

@cli.command('add-item')
@click.argument('assembly_id')
@click.argument('title')
@click.option('--option', 'options', multiple=True, required=True, help='Option label (repeat 2+ times)')
@click.option('--description', default='', help='Item description')
@click.option('--order', type=int, default=None, help='Sort position (default: last)')
@click.option('--secret', is_flag=True, help='Secret ballot')
@click.pass_context
@handle_errors
def add_item(ctx, assembly_id, title, options, description, order, secret):
    """Add an agenda item."""
    item = get_app(ctx).agenda.add_item(
        ctx.obj["actor"], assembly_id, title, list(options),
        description=description,
        order=order,
        voting_mode=VotingMode.SECRET if secret else VotingMode.OPEN,
    )
    click.echo(f"Agenda item created: {item.id}")


@cli.command('edit-item')
@click.argument('item_id')
@click.option('--title', default=None)
@click.option('--description', default=None)
@click.option('--option', 'options', multiple=True, help='Replace options (repeat 2+ times)')
@click.option('--order', type=int, default=None)
@click.option('--mode', type=click.Choice([m.value for m in VotingMode]), default=None)
@click.pass_context
@handle_errors
def edit_item(ctx, item_id, title, description, options, order, mode):
    """Edit a pending agenda item."""
    get_app(ctx).agenda.edit_item(
        ctx.obj["actor"], item_id,
        title=title,
        description=description,
        options=list(options) if options else None,
        order=order,
        voting_mode=mode,
    )
    click.echo("Agenda item updated.")


@cli.command('delete-item')
@click.argument('item_id')
@click.pass_context
@handle_errors
def delete_item(ctx, item_id):
    """Delete a pending agenda item."""
    get_app(ctx).agenda.delete_item(ctx.obj["actor"], item_id)
    click.echo("Agenda item deleted.")


@cli.command('open-item')
@click.argument('item_id')
@click.pass_context
@handle_errors
def open_item(ctx, item_id):
    """Open an agenda item for voting."""
    get_app(ctx).agenda.open_item(ctx.obj["actor"], item_id)
    click.echo("Voting open.")


@cli.command('close-item')
@click.argument('item_id')
@click.pass_context
@handle_errors
def close_item(ctx, item_id):
    """Close voting on an agenda item."""
    get_app(ctx).agenda.close_item(ctx.obj["actor"], item_id)
    click.echo("Voting closed.")


# ==================== Presence and ballots ====================

@cli.command()
@click.argument('target')
@click.pass_context
@handle_errors
def checkin(ctx, target):
    """Register presence by assembly id or presence link."""
    app = get_app(ctx)
    actor = ctx.obj["actor"]
    if "://" in target:
        visit = app.presence.visit_presence_link(actor, target)
        messages = {
            "registered": "Presence registered.",
            "already_registered": "Presence already registered.",
            "unavailable": "This assembly is not in progress.",
        }
        click.echo(f"{visit.assembly_title}: {messages[visit.outcome.value]}")
        return
    app.presence.register_presence(actor, target)
    click.echo("Presence registered.")


@cli.command()
@click.argument('assembly_id')
@click.pass_context
@handle_errors
def presences(ctx, assembly_id):
    """List who is present."""
    app = get_app(ctx)
    app.assemblies.get_assembly(assembly_id)
    rows = app.presence.list_presences(assembly_id)
    for presence in rows:
        click.echo(f"{format_datetime_short(presence.registered_at)}  {presence.voter_id}")
    click.echo(f"Total present: {len(rows)}")


@cli.command()
@click.argument('item_id')
@click.argument('choice')
@click.pass_context
@handle_errors
def vote(ctx, item_id, choice):
    """Cast a ballot on an open agenda item."""
    get_app(ctx).ledger.cast_ballot(ctx.obj["actor"], item_id, choice)
    click.echo("Ballot recorded.")


@cli.command()
@click.argument('assembly_id')
@click.pass_context
@handle_errors
def tally(ctx, assembly_id):
    """Show live results for every agenda item."""
    app = get_app(ctx)
    results = app.results.live_tallies(assembly_id)
    if not results:
        click.echo("No results to show.")
        return

    for result in results:
        state = "final" if result.is_final else "live"
        click.echo(f"\n{result.title} ({state}, {result.total} votes)")
        for option in result.options:
            marker = " *" if option.label == result.winner else ""
            click.echo(
                f"  {option.label:<20} {format_bar(option.percentage)} "
                f"{option.count} ({option.percentage:.1f}%){marker}"
            )
        if result.tied:
            click.echo("  Tie between the leading options.")


@cli.command()
@click.argument('assembly_id')
@click.option('--base-url', envvar='PUBLIC_BASE_URL', default=None, help='Public site root')
@click.option('--qr', 'qr_path', type=click.Path(dir_okay=False, writable=True), default=None,
              help='Also write the link as a QR code PNG')
@click.pass_context
@handle_errors
def link(ctx, assembly_id, base_url, qr_path):
    """Print the presence link of an assembly."""
    get_app(ctx).assemblies.get_assembly(assembly_id)
    presence_link = build_presence_link(assembly_id, base_url)
    click.echo(presence_link)
    if qr_path:
        with open(qr_path, "wb") as f:
            f.write(render_presence_qr(presence_link))
        click.echo(f"QR code written to {qr_path}")


@cli.command()
@click.argument('assembly_id')
@click.option('--output-dir', envvar='REPORT_OUTPUT_DIR', default=None,
              type=click.Path(file_okay=False), help='Destination directory')
@click.pass_context
@handle_errors
def export(ctx, assembly_id, output_dir):
    """Export a closed assembly's results as PDF."""
    path = get_app(ctx).export_pdf(assembly_id, output_dir)
    click.echo(f"Results exported to {path}")


@cli.command()
@click.option('--condo', 'condominium_id', envvar='SEED_CONDOMINIO_ID', default='demo-condominio')
@click.pass_context
@handle_errors
def seed(ctx, condominium_id):
    """Create an in-progress demo assembly with two agenda items."""
    app = get_app(ctx)
    actor = ctx.obj["actor"]

    assembly = app.assemblies.create_assembly(
        actor, condominium_id,
        "Assembleia de Teste - Presença & Votação",
        datetime.now(timezone.utc),
        agenda_topics=["Abertura", "Ordem do dia", "Encaminhamentos"],
    )
    app.assemblies.start(actor, assembly.id)

    budget = app.agenda.add_item(
        actor, assembly.id, "Aprovação do orçamento 2026",
        ["Sim", "Não", "Abstenção"],
        description="Deliberação sobre o orçamento anual proposto pela administração.",
    )
    app.agenda.add_item(
        actor, assembly.id, "Troca de empresa de portaria",
        ["Trocar", "Manter"],
        description="Proposta de troca de fornecedor atual por melhor custo/benefício.",
        voting_mode=VotingMode.SECRET,
    )
    app.agenda.open_item(actor, budget.id)

    click.echo(f"Demo assembly created: {assembly.id}")
    click.echo(f"  Presence link: {build_presence_link(assembly.id)}")
    open_items = [i for i in app.agenda.list_items(assembly.id) if i.status == AgendaItemStatus.OPEN]
    click.echo(f"  Items open for voting: {len(open_items)}")


@cli.command()
@click.argument('assembly_id')
@click.option('--realtime-url', envvar='REALTIME_URL', required=True, help='Change channel URL')
def watch(assembly_id, realtime_url):
    """Print change events of an assembly as they happen."""
    try:
        channel = RealtimeChannel(realtime_url)
    except RealtimeChannelError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    def show_event(event):
        item = f" item {event.agenda_item_id}" if event.agenda_item_id else ""
        click.echo(f"{format_datetime_short(event.occurred_at)}  {event.kind.value}{item}")

    channel.add_handler(show_event)
    channel.start_streaming(assembly_id)
    click.echo(f"Watching assembly {assembly_id}. Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        channel.stop_streaming()
        click.echo("\nStopped.")


if __name__ == "__main__":
    cli()
