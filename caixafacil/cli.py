# caixafacil/cli.py
import logging
import os

import click
from dotenv import load_dotenv

from caixafacil.ai import ask_advisor
from caixafacil.config import load_config
from caixafacil.dashboard import cash_projection, financial_snapshot
from caixafacil.database import (
    account_balance,
    delete_import,
    list_accounts,
    list_imports,
    query_transactions,
)
from caixafacil.errors import CaixaFacilError
from caixafacil.importer import import_statement, sync_account
from caixafacil.loaders import get_loader
from caixafacil.outputs import get_output
from caixafacil.utils import parse_mapping_overrides


def _brl(value):
    text = f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"R$ {text}"


@click.group()
@click.option(
    '--config', 'config_path',
    default='config.yaml',
    type=click.Path(dir_okay=False),
    help='Path to config.yaml (defaults are used when it does not exist)'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file with API credentials (OpenAI, Pluggy, Iniciador)'
)
@click.option(
    '--db', 'db_path',
    default=None,
    type=click.Path(dir_okay=False),
    help='SQLite database file (overrides db_path from config)'
)
@click.pass_context
def main(ctx, config_path, env_file, db_path):
    """
    CaixaFácil: import bank statements, categorize them with an LLM and
    follow the cash flow of a small business.
    """
    if env_file:
        load_dotenv(env_file)
    logging.basicConfig(
        level=os.getenv("CAIXAFACIL_LOG_LEVEL", "INFO").upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = load_config(config_path)
    except ValueError as e:
        raise click.ClickException(str(e))
    ctx.obj = {'config': cfg, 'db_path': db_path or cfg['db_path']}


def _report_import(result):
    click.echo(
        f"✅ {result.imported} transação(ões) importada(s) de {result.total} "
        f"para '{result.bank_account}'."
    )
    if result.skipped:
        click.echo(f"   {result.skipped} já existiam e foram ignoradas.")
    if result.discarded:
        click.echo(f"   {result.discarded} linha(s) inválida(s) descartada(s).")
    if result.defaulted:
        click.echo(
            f"⚠️  {result.defaulted} transação(ões) ficaram com categoria padrão; "
            "revise a categorização.",
            err=True,
        )


@main.command('import')
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--account', 'bank_account', required=True, help='Bank account label for the imported rows')
@click.option(
    '--map', 'mappings',
    multiple=True,
    help='Explicit column mapping, e.g. --map date="Data Lanç." (fields: date, description, value, type, supplier)'
)
@click.pass_obj
def import_cmd(obj, file_path, bank_account, mappings):
    """Import a CSV bank statement."""
    try:
        overrides = parse_mapping_overrides(mappings)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--map')
    try:
        result = import_statement(
            file_path, bank_account, obj['db_path'],
            config=obj['config'], overrides=overrides,
        )
    except CaixaFacilError as e:
        raise click.ClickException(str(e))
    _report_import(result)


@main.command('sync')
@click.argument('source', type=click.Choice(['pluggy', 'iniciador']))
@click.argument('item_id')
@click.option('--account', 'bank_account', required=True, help='Bank account label for the synced rows')
@click.pass_obj
def sync_cmd(obj, source, item_id, bank_account):
    """Sync transactions from an Open Banking aggregator connection."""
    loader = get_loader(source, obj['config'])
    try:
        result = sync_account(loader, item_id, bank_account, obj['db_path'], config=obj['config'])
    except CaixaFacilError as e:
        raise click.ClickException(str(e))
    _report_import(result)


@main.command('accounts')
@click.pass_obj
def accounts_cmd(obj):
    """List bank accounts with their balance."""
    accounts = list_accounts(obj['db_path'])
    if not accounts:
        click.echo("Nenhuma conta encontrada.")
        return
    for account in accounts:
        click.echo(f"{account:<24} {_brl(account_balance(obj['db_path'], account)):>16}")


@main.command('imports')
@click.pass_obj
def imports_cmd(obj):
    """List previous imports."""
    imports = list_imports(obj['db_path'])
    if not imports:
        click.echo("Nenhuma importação encontrada.")
        return
    for item in imports:
        click.echo(
            f"{item['import_date']}  {item['bank_account']:<20} "
            f"{item['transactions']:>5} transações  {item['notes']}"
        )


@main.command('delete-import')
@click.argument('notes')
@click.option('--account', 'bank_account', default=None, help='Restrict deletion to one bank account')
@click.confirmation_option(prompt='Excluir todas as transações desta importação?')
@click.pass_obj
def delete_import_cmd(obj, notes, bank_account):
    """Delete every transaction of one import (identified by its notes)."""
    deleted = delete_import(obj['db_path'], notes, bank_account)
    click.echo(f"{deleted} transação(ões) excluída(s).")


@main.command('summary')
@click.option('--months', default=6, show_default=True, type=click.IntRange(min=1))
@click.pass_obj
def summary_cmd(obj, months):
    """Show balance, monthly cash flow and top expense categories."""
    snap = financial_snapshot(obj['db_path'], obj['config'], months=months)
    click.echo(f"Saldo: {_brl(snap['balance'])}")
    click.echo("\nFluxo de caixa mensal:")
    for row in snap['monthly_cash_flow']:
        click.echo(
            f"  {row['period']}  receitas {_brl(row['income']):>16}  "
            f"despesas {_brl(row['expense']):>16}  saldo {_brl(row['net']):>16}"
        )
    click.echo("\nMaiores despesas:")
    for row in snap['top_expense_categories']:
        click.echo(f"  {row['category']:<24} {_brl(row['total']):>16}")
    if snap['upcoming_expenses']:
        click.echo("\nPróximos vencimentos:")
        for item in snap['upcoming_expenses']:
            click.echo(f"  {item['due_date']}  {item['description']:<24} {_brl(item['amount']):>16}")


@main.command('projection')
@click.option('--months', default=3, show_default=True, type=click.IntRange(min=1))
@click.pass_obj
def projection_cmd(obj, months):
    """Project the balance from average income and recurring expenses."""
    proj = cash_projection(obj['db_path'], obj['config'], months=months)
    click.echo(f"Saldo atual: {_brl(proj['current_balance'])}")
    click.echo(f"Receita média mensal: {_brl(proj['avg_monthly_income'])}")
    click.echo(f"Despesas recorrentes: {_brl(proj['monthly_recurring_expenses'])}")
    for p in proj['projections']:
        flag = '' if p['is_positive'] else '  ⚠️'
        click.echo(f"  {p['month']}  {_brl(p['balance']):>16}{flag}")
    if proj['has_negative']:
        click.echo("⚠️  A projeção indica saldo negativo no período.", err=True)


@main.command('export')
@click.option(
    '--output', 'output_format',
    default='csv',
    type=click.Choice(['csv', 'excel']),
    help='Output target: csv or excel'
)
@click.option('--account', 'bank_account', default=None, help='Only export one bank account')
@click.pass_obj
def export_cmd(obj, output_format, bank_account):
    """Export stored transactions as a CSV file or an Excel cash-flow report."""
    rows = query_transactions(obj['db_path'], bank_account=bank_account)
    outputter = get_output(output_format, obj['config'])
    path = outputter.write(rows)
    if path is None:
        click.echo("Nenhuma transação para exportar.")
        return
    click.echo(f"Exportadas {len(rows)} transação(ões) para {path}.")


@main.command('advisor')
@click.argument('question')
@click.pass_obj
def advisor_cmd(obj, question):
    """Ask the financial advisor a question about your numbers."""
    snap = financial_snapshot(obj['db_path'], obj['config'])
    try:
        answer = ask_advisor(snap, question)
    except RuntimeError as e:
        raise click.ClickException(str(e))
    click.echo(answer)


if __name__ == '__main__':
    main()
