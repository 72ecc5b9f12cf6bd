"""Minimal terminal loop over the Neuron conversation service."""

from neuron_core.api.service import get_conversation_state, reset_conversation, send_thought

if __name__ == "__main__":
    print("Neuron:", get_conversation_state()["messages"][-1]["text"])
    while True:
        try:
            thought = input("You: ")
        except (EOFError, KeyboardInterrupt):
            break
        if thought.strip() == "/reset":
            state = reset_conversation()
        else:
            state = send_thought(thought)
        print("Neuron:", state["messages"][-1]["text"])
        if state["error"]:
            print("  (error:", state["error"] + ")")
