# privace_bot/__main__.py
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))

def main():
    port = int(os.getenv("PORT", "") or "8080")
    print(f"[SERVER] listening on :{port}")
    uvicorn.run("privace_bot.main:app", host="0.0.0.0", port=port)

if __name__ == "__main__":
    main()
