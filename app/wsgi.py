from app.onekappa import create_app

app = create_app()
