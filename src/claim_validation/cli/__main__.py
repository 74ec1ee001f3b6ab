from claim_validation.cli import app

app()
