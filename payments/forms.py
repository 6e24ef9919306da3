from decimal import Decimal

from django import forms


class CreatePaymentForm(forms.Form):
    school_id = forms.CharField(max_length=64)
    student_name = forms.CharField(max_length=128)
    student_id = forms.CharField(max_length=64)
    student_email = forms.EmailField()
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    gateway_name = forms.CharField(max_length=32, required=False)
    description = forms.CharField(max_length=255, required=False)

    @classmethod
    def from_json(cls, body: dict):
        """Bind a JSON body; ``student_info`` may be nested or already flat."""
        data = dict(body or {})
        student = data.pop("student_info", None)
        if isinstance(student, dict):
            data.setdefault("student_name", student.get("name"))
            data.setdefault("student_id", student.get("id"))
            data.setdefault("student_email", student.get("email"))
        return cls(data)

    def clean_school_id(self):
        return self.cleaned_data["school_id"].strip()

    @property
    def student_info(self) -> dict:
        return {
            "name": self.cleaned_data["student_name"],
            "id": self.cleaned_data["student_id"],
            "email": self.cleaned_data["student_email"],
        }


class CancelPaymentForm(forms.Form):
    reason = forms.CharField(max_length=200, required=False)
