"""Prompt template commands."""

import click

from ...core.constants import RESUME_TEMPLATE
from ...exceptions import InvalidFrontMatterError
from ..helpers import HANDLED_ERRORS, fail, get_project_context, get_prompt_manager, load_project, print_table


def _variables(template) -> str:
    names = template.variables_hint()
    if len(names) > 4:
        return ", ".join(names[:4]) + ", ..."
    return ", ".join(names)


@click.command(name='list-prompts')
@click.option('--verbose', '-v', is_flag=True, help='Show each template\'s execution configuration')
@click.pass_context
def list_prompts(ctx, verbose):
    """List available prompt templates"""
    config_manager, config = load_project(ctx)
    prompts = get_prompt_manager(config_manager, config)

    names = prompts.list_prompts()
    if not names:
        click.echo(click.style("No templates found", fg='yellow'))
        return

    if not verbose:
        for name in names:
            click.echo(name)
        return

    rows = []
    for name in names:
        template = prompts.get_template(name)
        if name == RESUME_TEMPLATE:
            rows.append([name, template.origin, "from original kind", "", "", _variables(template)])
            continue
        try:
            exec_config = template.execution_config()
        except InvalidFrontMatterError as e:
            rows.append([name, template.origin, click.style(f"invalid: {e.reason}", fg='red'), "", "", ""])
            continue
        rows.append([
            name,
            template.origin,
            "preset" if exec_config.use_preset else "literal",
            ", ".join(exec_config.tools) or "all",
            exec_config.max_turns,
            _variables(template),
        ])
    print_table(["TEMPLATE", "SOURCE", "SYSTEM PROMPT", "TOOLS", "MAX TURNS", "VARIABLES"], rows)


@click.command()
@click.option('--template', '-t', required=True, help='Template name')
@click.option('--message', '-m', default='', help='Message passed to the template')
@click.pass_context
def prompt(ctx, template, message):
    """Render a prompt template without running it"""
    config_manager, config = load_project(ctx)
    project_root, _ = get_project_context(ctx)
    prompts = get_prompt_manager(config_manager, config)

    variables = {
        "repo_path": str(project_root),
        "main_branch": config.project.repository.main_branch,
        "message": message,
        "feature_description": message,
    }
    try:
        rendered = prompts.render(template, variables)
    except HANDLED_ERRORS as e:
        fail(e)
    click.echo(rendered)
