"""Minimal terminal demonstration of the business advisor session."""

from advisor_core.api import service

if __name__ == "__main__":
    state = service.hydrate_history()
    if state["notice"]:
        print("!", state["notice"])
    print(f"Loaded {len(state['conversations'])} conversation(s) from {state['source']}.")
    try:
        while True:
            question = input("You: ").strip()
            if question in {"/quit", "/exit"}:
                break
            if question == "/new":
                service.start_new_conversation()
                continue
            if question.startswith("/export"):
                print(service.export_history(question[len("/export"):].strip() or ".")["message"])
                continue
            view = service.submit_message(question)
            if view["status"] == "succeeded":
                print("Advisor:", view["response"])
                if view["message"]:
                    print("!", view["message"])
            elif view["status"] != "ignored":
                print("!", view["message"])
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        service.shutdown()
