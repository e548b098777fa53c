import typer

from .commands import chat, models

app = typer.Typer(help="Edge AI dispatch CLI")

app.add_typer(models.app, name="models", help="Inspect the model catalog")
app.add_typer(chat.app, name="chat", help="Send a prompt through the dispatch client")


def main():
    app()


if __name__ == "__main__":
    main()
