import azure.functions as func

from dad_joke.functions.routes import joke_bp

app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)
app.register_functions(joke_bp)
