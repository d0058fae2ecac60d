import uvicorn


def main():
    uvicorn.run("funnel_analytics.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
