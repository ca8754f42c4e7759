TRANSCRIPT = "doctor: What brings you in?\npatient: I have had a headache for three days"


def test_summary_returns_trimmed_model_output(client, stub_llm):
    stub_llm(reply="\nPatient reports a 3-day headache.  ")
    r = client.post("/api/summary", json={"text": TRANSCRIPT})
    assert r.status_code == 200
    assert r.get_json() == {"summary": "Patient reports a 3-day headache."}


def test_summary_prompt(client, stub_llm):
    fake = stub_llm(reply="ok")
    client.post("/api/summary", json={"text": TRANSCRIPT})

    system, user = fake.calls[0]
    assert system["role"] == "system"
    assert "symptoms, diagnoses, medications, and follow-up actions" in system["content"]
    assert "concise" in system["content"]
    assert user == {"role": "user", "content": TRANSCRIPT}


def test_empty_model_output_gives_no_summary_available(client, stub_llm):
    stub_llm(reply="")
    r = client.post("/api/summary", json={"text": TRANSCRIPT})
    assert r.status_code == 200
    assert r.get_json() == {"summary": "No summary available."}


def test_model_error_gives_fixed_error_string(client, stub_llm):
    stub_llm(error=RuntimeError("quota exceeded"))
    r = client.post("/api/summary", json={"text": TRANSCRIPT})
    assert r.status_code == 500
    assert r.get_json() == {"summary": "Error generating summary."}


def test_missing_credential_gives_fixed_error_string(client, stub_llm):
    stub_llm(reply=None)
    r = client.post("/summary", json={"text": ""})
    assert r.status_code == 500
    assert r.get_json() == {"summary": "Error generating summary."}
