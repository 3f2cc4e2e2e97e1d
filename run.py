import os
from app import create_app

# Tables are created by the factory
app = create_app()

if __name__ == "__main__":
    # Development server; production runs the app object behind a WSGI server
    app.run(debug=os.getenv("FLASK_DEBUG", "1") == "1", host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
