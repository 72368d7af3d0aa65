import streamlit as st
import requests
import pandas as pd

from export import export_filename

BASE_URL = st.secrets.get("backend_url", "http://localhost:8000")

event = requests.get(f"{BASE_URL}/event").json()
st.title(event["name"] or "Expense Split")

# Event
new_name = st.text_input("Event name", value=event["name"])
if new_name != event["name"] and st.button("Rename event"):
    requests.put(f"{BASE_URL}/event", json={"name": new_name})
    st.rerun()

# Participants
st.header("Participants")
name = st.text_input("New participant name")
payment_info = st.text_input("Payment info (alias / account, optional)")
if st.button("Add Participant"):
    r = requests.post(f"{BASE_URL}/participants", json={"name": name, "payment_info": payment_info})
    st.success(f"Added: {r.json()['name']}" if r.status_code == 200 else f"Error: {r.text}")

participants = requests.get(f"{BASE_URL}/participants").json()
names = {p["id"]: p["name"] for p in participants}
if participants:
    st.dataframe(pd.DataFrame(participants)[["id", "name", "payment_info"]])
    to_remove = st.selectbox("Remove participant", options=participants, format_func=lambda p: p["name"])
    if st.button("Remove"):
        r = requests.delete(f"{BASE_URL}/participants/{to_remove['id']}")
        if r.status_code == 200:
            st.warning(f"Removed {to_remove['name']} and {len(r.json()['deleted_expenses'])} expense(s) they paid")
        else:
            st.error(f"Error: {r.text}")

# Add Expense
st.header("Add Expense")
if participants:
    description = st.text_input("Description")
    amount = st.number_input("Amount", min_value=0.0, step=1.0)
    payer = st.selectbox("Paid by", options=participants, format_func=lambda p: p["name"])
    shared = st.multiselect("Shared by (leave empty for everyone)", options=participants, format_func=lambda p: p["name"])

    if st.button("Submit Expense"):
        r = requests.post(f"{BASE_URL}/expenses", json={
            "description": description,
            "amount": amount,
            "paid_by": payer["id"],
            "shared_by": [p["id"] for p in shared],
        })
        if r.status_code == 200:
            st.success("Expense added")
        else:
            st.error(f"Error: {r.text}")

expenses = requests.get(f"{BASE_URL}/expenses").json()
if expenses:
    exp_df = pd.DataFrame(expenses)
    exp_df["paid_by"] = exp_df["paid_by"].map(names)
    exp_df["shared_by"] = exp_df["shared_by"].map(
        lambda ids: ", ".join(names.get(i, "?") for i in ids) if ids else "Everyone"
    )
    st.dataframe(exp_df[["description", "amount", "paid_by", "shared_by"]])

# Settlement
st.header("Settlement")
r = requests.get(f"{BASE_URL}/settlement")
if r.status_code != 200:
    st.error(f"Error: {r.text}")
else:
    data = r.json()
    if data["status"] == "insufficient_data":
        st.info("Add at least 2 participants and 1 expense to see the split.")
    else:
        st.metric("Total spent", f"${data['total_spent']:,.0f}")
        st.metric("Average per person", f"${data['average_per_person']:,}")

        st.subheader("Balances")
        st.dataframe(pd.DataFrame(data["balances"])[["name", "paid", "owes", "balance", "payment_info"]])

        st.subheader("Transfers")
        if data["transactions"]:
            st.dataframe(pd.DataFrame(data["transactions"])[["from_name", "to_name", "amount", "to_payment_info"]])
        else:
            st.success("All settled!")

        st.subheader("Share")
        st.code(requests.get(f"{BASE_URL}/summary").text)
        if st.button("Prepare spreadsheet"):
            xlsx = requests.get(f"{BASE_URL}/export.xlsx")
            st.download_button("Download spreadsheet", data=xlsx.content, file_name=export_filename(event["name"]))
